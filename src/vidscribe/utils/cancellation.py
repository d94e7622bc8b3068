"""Per-session cancellation tokens."""

from __future__ import annotations

from typing import Optional
from uuid import uuid4


class SessionCancelledError(RuntimeError):
    """Raised when work is attempted on behalf of an abandoned session."""


class CancellationToken:
    """Flag shared by every stage of one session.

    The orchestrator cancels the token when the user removes or replaces the selected
    file; stages check it before committing their results.
    """

    def __init__(self, session_id: Optional[str] = None) -> None:
        self.session_id = session_id or str(uuid4())
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise SessionCancelledError(f"Session {self.session_id} was cancelled.")

    def __repr__(self) -> str:
        return f"CancellationToken(session_id={self.session_id!r}, cancelled={self._cancelled})"


__all__ = ["CancellationToken", "SessionCancelledError"]
