"""Exception types for the answer board core.

Only SecurityViolationError is meant to reach callers of a lookup; store and
cache failures are absorbed inside the core and surface as "no data".
"""


class AnswerBoardError(Exception):
    """Base class for answer board errors."""


class ConfigurationError(AnswerBoardError):
    """Required setting is missing or malformed."""


class UnknownCacheLayerError(AnswerBoardError, KeyError):
    """A cache layer name outside the layer table was used."""

    def __init__(self, layer: str):
        super().__init__(f"Unknown cache layer: {layer!r}")
        self.layer = layer

    def __str__(self) -> str:
        return self.args[0]


class StoreError(AnswerBoardError):
    """The remote tabular store could not serve a read or write."""


class SecurityViolationError(AnswerBoardError):
    """Caller is not allowed to read the requested tenant's record.

    The message is fixed and never carries record data.
    """

    def __init__(self, message: str):
        super().__init__(message)
