from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ProcessError(Exception):
    """Base error envelope. Prefer returning/printing these rather than raising raw exceptions."""

    code: str
    message: str
    file: Optional[str] = None
    path: Optional[str] = None

    def __str__(self) -> str:
        parts: list[str] = []
        if self.file:
            parts.append(self.file)
        if self.path:
            parts.append(self.path)
        loc = ":".join(parts) if parts else "<process>"
        return f"{loc}: {self.code}: {self.message}"


class ProcessLoadError(ProcessError):
    pass


class ProcessValidationError(ProcessError):
    pass


class SubmissionError(ProcessError):
    """Raised by the submission log, e.g. E_SUBMISSION_TERMINAL when a step already marked done is resubmitted.

    ``path`` carries the step node id.
    """
