"""Exception types raised by the variance engine."""


class InvalidParameterError(ValueError):
    """A caller-supplied parameter is outside the domain of the model.

    Raised before any computation starts. Subclasses ``ValueError`` so callers
    that only know about the builtin keep working.
    """


class EngineFailure(RuntimeError):
    """A simulation request ended with an error instead of a result."""

    def __init__(self, message: str, request_id: str | None = None) -> None:
        super().__init__(message)
        self.request_id = request_id


class ProtocolViolation(RuntimeError):
    """A worker message arrived out of order or for another request."""
