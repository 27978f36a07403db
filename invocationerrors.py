class InvocationError(Exception):
    kind = "InvocationError"

    def __init__(self, message):
        super().__init__(message)
        self.message = message
        self.cleanup_error = None

    def to_dict(self):
        return {"error": True, "msg": self.message}


class ImageNotFound(InvocationError):
    kind = "ImageNotFound"


class CreateFailed(InvocationError):
    kind = "CreateFailed"


class StartFailed(InvocationError):
    kind = "StartFailed"


class WaitFailed(InvocationError):
    kind = "WaitFailed"


class LogsFailed(InvocationError):
    kind = "LogsFailed"


class RemoveFailed(InvocationError):
    kind = "RemoveFailed"


class ContainerRunError(InvocationError):
    kind = "ContainerRunError"


class MissingContentType(InvocationError):
    kind = "MissingContentType"


class DemuxFailed(InvocationError):
    kind = "DemuxFailed"


class InvocationCancelled(InvocationError):
    kind = "InvocationCancelled"


class TagResolutionError(InvocationError):
    kind = "TagResolutionError"


def describe(err):
    """Short text for an engine error, preferring the daemon's explanation."""
    explanation = getattr(err, "explanation", None)
    if explanation:
        return str(explanation)
    return str(err)
