"""
Error Types

Structured error reporting shared by the session, the orchestrator and
the service layer.  Every outward-facing failure is reduced to a
(context, message, inner) triple; tracebacks stay in the log.
"""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass
class ErrorReport:
    """Human context, root message and optional inner-cause message."""

    context: str
    message: str
    inner: Optional[str] = None
    kind: str = "error"

    @classmethod
    def from_exception(
        cls, context: str, exc: BaseException, kind: str = "error"
    ) -> "ErrorReport":
        cause = exc.__cause__ or exc.__context__
        return cls(
            context=context,
            message=str(exc) or exc.__class__.__name__,
            inner=str(cause) if cause is not None else None,
            kind=kind,
        )

    def to_dict(self) -> Dict:
        return {
            "kind": self.kind,
            "error": self.context,
            "detail": self.message,
            "inner": self.inner,
        }

    def __str__(self) -> str:
        text = f"{self.context}: {self.message}"
        if self.inner:
            text += f" (inner: {self.inner})"
        return text


class LinkTunerError(Exception):
    """Base exception carrying an ErrorReport."""

    def __init__(self, report: ErrorReport):
        self.report = report
        super().__init__(str(report))


class SessionLostError(LinkTunerError):
    """The SSH session dropped and could not be re-established."""


class SettingsError(LinkTunerError):
    """Scan settings failed validation."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__(
            ErrorReport(
                context="Invalid scan settings",
                message="; ".join(self.errors),
                kind="settings",
            )
        )
