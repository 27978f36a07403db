import base64
import hashlib
import json
import logging
from datetime import datetime, timezone

DEFAULT_CONTENT_LENGTH = 200


def _now():
    return datetime.now(timezone.utc)


def md5_digest(data):
    """Base64 of the 128-bit MD5 digest."""
    return base64.b64encode(hashlib.md5(data).digest()).decode("ascii")


def first_n_characters(data, n):
    if len(data) < n:
        return data
    return data[:n]


class AuditEvent:
    def __init__(self, image, tag, params, method, image_exists_in_local):
        self.image = image
        self.tag = tag
        self.request_time = _now()
        self.params = list(params)
        self.method = method
        self.image_exists_in_local = image_exists_in_local
        self.response_time = None
        self.headers = None
        self.error = ""
        self.content_md5 = ""
        self.content = ""
        self.closed = False

    def to_dict(self):
        record = {
            "image": self.image,
            "tag": self.tag,
            "request_time": self.request_time.isoformat(),
            "params": self.params,
            "method": self.method,
            "response_time": self.response_time.isoformat() if self.response_time else None,
            "image_exists_in_local": self.image_exists_in_local,
        }
        # Response-side fields are left out when empty
        if self.headers:
            record["headers"] = dict(self.headers)
        if self.error:
            record["error"] = self.error
        if self.content_md5:
            record["content_md5"] = self.content_md5
        if self.content:
            record["content"] = self.content
        return record


class AuditRecorder:
    """Builds one AuditEvent per invocation and writes it as a single JSON log line."""

    def __init__(self, logger=None, content_length=DEFAULT_CONTENT_LENGTH):
        self.logger = logger or logging.getLogger("container_exec.audit")
        self.content_length = content_length

    def open(self, image_ref, params, method, exists):
        return AuditEvent(image_ref.name, image_ref.tag, params, method, exists)

    def close(self, event, response=None, error=None):
        if event.closed:
            raise RuntimeError("audit event already closed")
        event.closed = True
        event.response_time = _now()
        event.error = error or ""
        if response is not None:
            event.headers = dict(response.headers)
            event.content_md5 = md5_digest(response.body)
            event.content = first_n_characters(response.body.decode("utf-8", errors="replace"), self.content_length)
        return event

    def emit(self, event):
        try:
            line = json.dumps({"message": "incoming request", "request": event.to_dict()}, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            self.logger.warning("could not serialise audit event for image %s: %s", event.image, e)
            return
        self.logger.info(line)
