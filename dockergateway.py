import io

import docker
import requests

from invocationcontext import in_background


class DockerGateway:
    """
    Pass-through over the docker engine API used by the container runner.
    Nothing here retries or interprets errors; docker exceptions reach the
    caller unchanged. Anything exposing the same methods can replace it.

    Calls without a per-request timeout in the SDK are bounded by the client
    timeout, which the service sets to the invocation deadline.
    """

    def __init__(self, api):
        self.api = api

    @classmethod
    def from_env(cls, timeout=None):
        kwargs = {}
        if timeout:
            kwargs["timeout"] = timeout
        return cls(docker.from_env(**kwargs).api)

    def pull(self, image, ctx):
        return self.api.pull(image, stream=True, decode=True)

    def create(self, image, ctx, command=None, environment=None):
        container = self.api.create_container(
            image=image,
            command=command,
            environment=environment,
            tty=False
        )
        return container["Id"]

    def start(self, handle, ctx):
        self.api.start(handle)

    def wait(self, handle, ctx):
        # Resolves with the exit status dict or fails with the engine error.
        return in_background(
            self.api.wait, handle,
            timeout=ctx.remaining(),
            condition="not-running",
            name=f"wait-{handle[:12]}",
        )

    def logs(self, handle, ctx):
        url = self.api._url("/containers/{0}/logs", handle)
        params = {"stdout": 1, "stderr": 1, "follow": 1, "timestamps": 0}
        timeout = ctx.remaining()
        if timeout is None:
            timeout = self.api.timeout
        response = self.api.get(url, params=params, timeout=timeout)
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            docker.errors.create_api_error_from_http_exception(e)
        # Multiplexed frames, still interleaved.
        return io.BytesIO(response.content)

    def remove(self, handle, ctx, force=False):
        self.api.remove_container(handle, force=force)

    def inspect_image(self, image, ctx):
        return self.api.inspect_image(image)
