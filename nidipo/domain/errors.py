from __future__ import annotations

from collections.abc import Sequence


class FormValidationError(ValueError):
    """Raised before any persistence call when the form bag is incomplete."""

    def __init__(self, message: str, missing: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.missing = list(missing)


class PersistenceError(RuntimeError):
    """A save/submit call was rejected; the message is the collaborator's, verbatim."""


class AccessDeniedError(ValueError):
    pass
