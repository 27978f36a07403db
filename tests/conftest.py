import io
import struct
import sys
from concurrent.futures import Future
from pathlib import Path

import docker
import pytest

# Ensure the root modules import when running `pytest` from the repo root.
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))


def frame(stream_id, payload):
    return struct.pack(">BxxxL", stream_id, len(payload)) + payload


class FakeGateway:
    """Scripted stand-in for DockerGateway that records every call."""

    def __init__(self, stdout=b"", stderr=b""):
        self.calls = []
        self.errors = {}
        self.handle = "4f1c2a9b7d3e"
        self.pull_events = [{"status": "Pulling fs layer"}, {"status": "Download complete"}]
        self.log_bytes = b""
        if stdout:
            self.log_bytes += frame(1, stdout)
        if stderr:
            self.log_bytes += frame(2, stderr)
        self.wait_status = {"StatusCode": 0}
        self.wait_error = None
        self.wait_pending = False
        self.on_wait = None
        self.local_images = set()

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.errors:
            raise self.errors[name]

    def names(self):
        return [call[0] for call in self.calls]

    def count(self, name):
        return self.names().count(name)

    def pull(self, image, ctx):
        self._record("pull", image)
        return iter(self.pull_events)

    def create(self, image, ctx, command=None, environment=None):
        self._record("create", image, command, environment)
        return self.handle

    def start(self, handle, ctx):
        self._record("start", handle)

    def wait(self, handle, ctx):
        self._record("wait", handle)
        future = Future()
        if self.on_wait is not None:
            self.on_wait()
        if self.wait_pending:
            return future
        if self.wait_error is not None:
            future.set_exception(self.wait_error)
        else:
            future.set_result(self.wait_status)
        return future

    def logs(self, handle, ctx):
        self._record("logs", handle)
        return io.BytesIO(self.log_bytes)

    def remove(self, handle, ctx, force=False):
        self._record("remove", handle, force)

    def inspect_image(self, image, ctx):
        self._record("inspect_image", image)
        if image not in self.local_images:
            raise docker.errors.ImageNotFound(f"No such image: {image}")
        return {"Id": "sha256:0123"}


HTML_OUTPUT = (
    b"Content-Type: text/html\n"
    b"Content-Length: 149\n"
    b"\n"
    b"<html><head><title>Available formats</title></head>\n"
    b"<body><h1>Available formats</h1>\n"
    b"<ul><li>html</li><li>json</li><li>plain</li></ul>\n"
    b"</body></html>"
)


@pytest.fixture
def gateway():
    return FakeGateway(stdout=HTML_OUTPUT)
