from typing import List, Optional


class BotDetectorError(Exception):
    """Base class for errors surfaced to callers of a tracking session."""


class FeatureValidationError(BotDetectorError):
    """A finalized feature vector fell outside its contract; nothing was sent."""

    def __init__(self, fields: List[str], values: Optional[dict] = None):
        self.fields = list(fields)
        self.values = dict(values or {})
        super().__init__("invalid feature fields: " + ", ".join(self.fields))


class TransmitError(BotDetectorError):
    """The output sink rejected the vector or could not be reached.

    ``vector`` is the FeatureVector that failed to send, kept so the caller can
    retry or export it locally.
    """

    def __init__(self, message: str, vector=None):
        self.vector = vector
        super().__init__(message)
