import logging
import struct

from docker.constants import STREAM_HEADER_SIZE_BYTES
from docker.utils.socket import STDERR, STDOUT

from invocationcontext import in_background
from invocationerrors import (
    ContainerRunError,
    CreateFailed,
    DemuxFailed,
    ImageNotFound,
    InvocationCancelled,
    InvocationError,
    LogsFailed,
    RemoveFailed,
    StartFailed,
    WaitFailed,
    describe,
)

MODE_ARGS = "args"
MODE_ENV = "env"
MODES = (MODE_ARGS, MODE_ENV)

# Stream ids docker.utils.socket leaves out
STDIN = 0
SYSTEMERR = 3

_FRAME_HEADER = struct.Struct(">BxxxL")


class RunOutput:
    def __init__(self, stdout, stderr):
        self.stdout = stdout
        self.stderr = stderr


def _read_exactly(stream, size):
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def demultiplex(stream):
    """
    Split a multiplexed log stream into (stdout, stderr).

    Each frame is an 8 byte header (stream id, three padding bytes, big-endian
    payload size) followed by the payload.
    """
    stdout = bytearray()
    stderr = bytearray()
    while True:
        header = _read_exactly(stream, STREAM_HEADER_SIZE_BYTES)
        if not header:
            break
        if len(header) < STREAM_HEADER_SIZE_BYTES:
            raise DemuxFailed("cannot read logs from the container: truncated frame header")
        stream_id, size = _FRAME_HEADER.unpack(header)
        payload = _read_exactly(stream, size)
        if len(payload) < size:
            raise DemuxFailed("cannot read logs from the container: truncated frame payload")

        if stream_id in (STDIN, STDOUT):
            stdout += payload
        elif stream_id == STDERR:
            stderr += payload
        elif stream_id == SYSTEMERR:
            text = payload.decode("utf-8", errors="replace")
            raise DemuxFailed(f"cannot read logs from the container: error from daemon in stream: {text}")
        else:
            raise DemuxFailed(f"cannot read logs from the container: unrecognized stream id {stream_id}")
    return bytes(stdout), bytes(stderr)


class ContainerRunner:
    """Runs one image to completion per call and returns its demultiplexed output."""

    def __init__(self, gateway, logger=None, poll_interval=0.1):
        self.gateway = gateway
        self.logger = logger or logging.getLogger("container_exec.runner")
        self.poll_interval = poll_interval

    def run(self, image, mode, payload, ctx):
        if mode not in MODES:
            raise ValueError(f"unknown invocation mode: {mode}")

        self._pull(image, ctx)
        handle = self._create(image, mode, payload, ctx)

        remove_attempted = False
        try:
            self._start(handle, ctx)
            self._await_exit(handle, ctx)
            stream = self._fetch_logs(handle, ctx)
            remove_attempted = True
            self._remove(handle, ctx)
        except Exception as err:
            if not remove_attempted:
                self._teardown(handle, ctx, err)
            raise

        return self._collect(stream)

    def _fail(self, error, cause=None):
        self.logger.error(error.message)
        if cause is None:
            raise error
        raise error from cause

    def _check(self, ctx):
        try:
            ctx.check()
        except InvocationCancelled as err:
            self._fail(err)

    def _drain_pull(self, image, ctx):
        # The image is only usable once the progress stream is drained.
        for event in self.gateway.pull(image, ctx):
            if ctx.done():
                return None
            if isinstance(event, dict) and event.get("error"):
                return event["error"]
        return None

    def _race(self, future, ctx):
        try:
            ctx.wait_for(future, self.poll_interval)
        except InvocationCancelled as err:
            self._fail(err)

    def _pull(self, image, ctx):
        self._check(ctx)
        progress = in_background(self._drain_pull, image, ctx, name=f"pull-{image}")
        self._race(progress, ctx)
        try:
            failure = progress.result()
        except Exception as e:
            self._fail(ImageNotFound(f"image not found, {describe(e)}"), e)
        if failure is not None:
            self._fail(ImageNotFound(f"image not found, {failure}"))
        self._check(ctx)
        self.logger.debug("pulled image %s", image)

    def _create(self, image, mode, payload, ctx):
        self._check(ctx)
        options = {"command": payload} if mode == MODE_ARGS else {"environment": payload}
        try:
            handle = self.gateway.create(image, ctx, **options)
        except Exception as e:
            self._fail(CreateFailed(f"could not create a new container for image {image} because: {describe(e)}"), e)
        self.logger.debug("created container %s for image %s", handle, image)
        return handle

    def _start(self, handle, ctx):
        self._check(ctx)
        try:
            self.gateway.start(handle, ctx)
        except Exception as e:
            self._fail(StartFailed(f"could not start container with: {describe(e)}"), e)

    def _await_exit(self, handle, ctx):
        try:
            status = self.gateway.wait(handle, ctx)
        except Exception as e:
            self._fail(WaitFailed(f"cannot wait for container to complete with: {describe(e)}"), e)

        self._race(status, ctx)
        try:
            result = status.result()
        except Exception as e:
            if ctx.done():
                self._check(ctx)
            self._fail(WaitFailed(f"cannot wait for container to complete with: {describe(e)}"), e)

        if isinstance(result, dict):
            self.logger.debug("container %s exited with status %s", handle, result.get("StatusCode"))

    def _fetch_logs(self, handle, ctx):
        self._check(ctx)
        try:
            return self.gateway.logs(handle, ctx)
        except Exception as e:
            self._fail(LogsFailed(f"cannot get container logs with: {describe(e)}"), e)

    def _remove(self, handle, ctx):
        try:
            self.gateway.remove(handle, ctx)
        except Exception as e:
            self._fail(RemoveFailed(f"cannot remove container {handle}: {describe(e)}"), e)
        self.logger.debug("removed container %s", handle)

    def _teardown(self, handle, ctx, err):
        try:
            self.gateway.remove(handle, ctx, force=True)
        except Exception as e:
            cleanup_error = RemoveFailed(f"cannot remove container {handle}: {describe(e)}")
            cleanup_error.__cause__ = e
            self.logger.error(cleanup_error.message)
            if isinstance(err, InvocationError):
                err.cleanup_error = cleanup_error
        else:
            self.logger.debug("removed container %s after failure", handle)

    def _collect(self, stream):
        try:
            stdout, stderr = demultiplex(stream)
        except DemuxFailed as err:
            self._fail(err)
        except Exception as e:
            self._fail(DemuxFailed(f"cannot read logs from the container: {describe(e)}"), e)

        if stderr:
            self.logger.error(stderr.decode("utf-8", errors="replace"))
            self._fail(ContainerRunError("error occurred while running the image"))
        return RunOutput(stdout, stderr)
