"""Exception taxonomy for the analysis pipeline."""

from __future__ import annotations

from typing import Optional


class ValidationError(ValueError):
    """Input text rejected before any processing starts."""


class CollaboratorUnavailable(RuntimeError):
    """An inference provider is not configured or not loaded."""

    def __init__(self, task: str, message: str = ""):
        self.task = task
        super().__init__(message or f"No {task} provider available")


class CollaboratorError(RuntimeError):
    """A single call to an inference provider failed."""

    def __init__(self, task: str, reason: str):
        self.task = task
        self.reason = reason
        super().__init__(f"{task} call failed: {reason}")


class InvariantViolation(RuntimeError):
    """Internal consistency check failed; aborts the whole analysis."""

    def __init__(self, stage: str, detail: str, token: Optional[str] = None):
        self.stage = stage
        self.detail = detail
        self.token = token
        msg = f"[{stage}] {detail}"
        if token is not None:
            msg += f" (token={token!r})"
        super().__init__(msg)


class AnalysisCancelled(RuntimeError):
    def __init__(self, stage: str = ""):
        self.stage = stage
        super().__init__("Cancelled by user." + (f" (stage: {stage})" if stage else ""))
