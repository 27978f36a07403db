"""
Containers answer by printing a minimal HTTP message on stdout:

    Content-Type: text/html
    Content-Length: 149

    <html>...</html>

The block before the first blank line holds the headers, everything after it
is relayed byte for byte as the response body.
"""

from invocationerrors import MissingContentType

SEPARATOR = b"\n\n"


class FramedResponse:
    def __init__(self, body, headers):
        self.body = body
        self.headers = headers


def parse_headers(text):
    """Return (headers, has_content_type) for a header block."""
    headers = {}
    has_content_type = False
    for line in text.split("\n"):
        key, sep, value = line.partition(":")
        if not sep:
            continue
        headers[key] = value.strip()
        if key.strip().lower() == "content-type":
            has_content_type = True
    return headers, has_content_type


def frame_response(stdout):
    header_block, _, body = stdout.partition(SEPARATOR)
    headers, has_content_type = parse_headers(header_block.decode("utf-8", errors="replace"))
    if not has_content_type:
        raise MissingContentType("does not contain content type in logs")
    return FramedResponse(body, headers)
