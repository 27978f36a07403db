import requests

from invocationerrors import TagResolutionError

DEFAULT_TIMEOUT = 10


def resolve_latest_tag(registry, image_name, session=None, timeout=DEFAULT_TIMEOUT):
    """
    Map the `latest` alias onto a concrete tag using the registry's tag list.

    Tags are sorted lexicographically and the second highest is returned,
    the highest being `latest` itself.
    """
    http = session or requests
    url = f"https://{registry}/v2/{image_name}/tags/list"
    try:
        resp = http.get(url, timeout=timeout)
        resp.raise_for_status()
        tags = resp.json().get("tags") or []
    except requests.exceptions.RequestException as e:
        raise TagResolutionError(f"could not resolve latest tag for image {image_name}: {e}") from e
    except (ValueError, AttributeError) as e:
        raise TagResolutionError(f"could not resolve latest tag for image {image_name}: invalid tag list") from e

    if len(tags) < 2:
        raise TagResolutionError(f"could not resolve latest tag for image {image_name}: not enough tags published")
    return sorted(tags)[-2]
