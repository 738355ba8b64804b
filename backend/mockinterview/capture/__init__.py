from mockinterview.capture.correlator import EmotionCaptureCorrelator, derive_expression
from mockinterview.capture.frames import CameraFrameSource, UploadedFrameSource
from mockinterview.capture.inference import HumeBatchClient
from mockinterview.capture.ledger import ExpressionLedger

__all__ = [
    "CameraFrameSource",
    "EmotionCaptureCorrelator",
    "ExpressionLedger",
    "HumeBatchClient",
    "UploadedFrameSource",
    "derive_expression",
]
