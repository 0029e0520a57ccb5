from typing import Any, Dict


class ResumeGPTError(Exception):
    """Base class for every error raised by the resume engine."""


class MalformedOutput(ResumeGPTError):
    """Model response is not JSON or does not match the expected envelope."""

    def __init__(self, message: str, raw_output: str | None = None):
        super().__init__(message)
        self.raw_output = raw_output


class InvalidPatchField(ResumeGPTError):
    """A single field of a patch failed validation. Collected as a warning."""

    def __init__(self, field: str, reason: str):
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "reason": self.reason}


class ModelUnavailable(ResumeGPTError):
    """Timeout, network or quota failure while calling the model."""


class PersistenceFailure(ResumeGPTError):
    """The session store could not save or load a session."""


class GenerationInProgress(ResumeGPTError):
    """A model call is already in flight for this session."""


class SessionNotFound(ResumeGPTError):
    pass


class RenderError(ResumeGPTError):
    """LaTeX compilation failed."""

    def __init__(self, message: str, timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out
