import logging

import docker
import requests

from containerrunner import MODES
from invocationerrors import ImageNotFound, InvocationError, TagResolutionError
from responseframing import frame_response


class ImageReference:
    def __init__(self, registry, name, tag):
        self.registry = registry
        self.name = name
        self.tag = tag

    @property
    def qualified(self):
        if self.registry:
            return f"{self.registry}/{self.name}:{self.tag}"
        return f"{self.name}:{self.tag}"

    def with_tag(self, tag):
        return ImageReference(self.registry, self.name, tag)

    def __repr__(self):
        return f"ImageReference({self.qualified!r})"


class InvocationResult:
    def __init__(self, response=None, error=None, event=None):
        if (response is None) == (error is None):
            raise ValueError("an invocation result holds either a response or an error")
        self.response = response
        self.error = error
        self.event = event

    @classmethod
    def success(cls, response, event=None):
        return cls(response=response, event=event)

    @classmethod
    def failure(cls, error, event=None):
        return cls(error=error, event=event)

    @property
    def ok(self):
        return self.error is None

    @property
    def kind(self):
        return None if self.ok else self.error.kind

    @property
    def message(self):
        return "" if self.ok else self.error.message

    @property
    def not_found(self):
        return isinstance(self.error, (ImageNotFound, TagResolutionError))


class InvocationService:
    """Runs an image for one request, frames its stdout and audits the call."""

    def __init__(self, gateway, runner, recorder, logger=None):
        self.gateway = gateway
        self.runner = runner
        self.recorder = recorder
        self.logger = logger or logging.getLogger("container_exec.invocation")

    def image_exists(self, image, ctx):
        try:
            self.gateway.inspect_image(image, ctx)
        except (docker.errors.DockerException, requests.exceptions.RequestException) as e:
            self.logger.debug("image %s not present locally: %s", image, e)
            return False
        return True

    def invoke(self, image_ref, mode, payload, ctx, method="GET"):
        if mode not in MODES:
            raise ValueError(f"unknown invocation mode: {mode}")

        image = image_ref.qualified
        event = self.recorder.open(image_ref, payload, method, False)
        event.image_exists_in_local = self.image_exists(image, ctx)

        try:
            output = self.runner.run(image, mode, payload, ctx)
            response = frame_response(output.stdout)
        except InvocationError as err:
            return self._failed(event, image, err)

        self.recorder.close(event, response=response)
        self.recorder.emit(event)
        return InvocationResult.success(response, event)

    def reject(self, image_ref, payload, error, method="GET"):
        """Audit a request that failed before any container could run."""
        event = self.recorder.open(image_ref, payload, method, False)
        return self._failed(event, image_ref.qualified, error)

    def _failed(self, event, image, err):
        self.logger.info("invocation of %s failed (%s): %s", image, err.kind, err.message)
        self.recorder.close(event, error=err.message)
        self.recorder.emit(event)
        return InvocationResult.failure(err, event)
