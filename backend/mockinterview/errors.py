class InterviewError(Exception):
    pass


class GenerationUnavailable(InterviewError):
    """Every question provider failed for a request."""


class InferenceUnavailable(InterviewError):
    """The emotion job failed, never completed, or returned no emotions."""


class CaptureSkipped(InterviewError):
    """No live frame source, capture disabled, or no frame to grab."""


class MediaUnavailable(InterviewError):
    user_message = "Could not access camera. Please check permissions and try again."


class MediaPermissionDenied(MediaUnavailable):
    user_message = "Camera access denied. Please allow camera access and try again."


class MediaDeviceMissing(MediaUnavailable):
    user_message = "No camera found. Please connect a camera and try again."


class SessionStateError(InterviewError):
    pass
