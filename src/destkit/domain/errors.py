"""Error taxonomy shared by mapping, reconciliation and destination adapters.

Not-found lookups are deliberately absent: they are a normal lookup result
(``ErrorEntry`` with the not-found category) and drive record creation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class UpsertError(RuntimeError):
    """Base class for failures surfaced to the invoking framework."""


class PayloadValidationError(UpsertError):
    """Raised before any network call when a mapped payload is unusable."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field

    @classmethod
    def missing_field(cls, name: str) -> PayloadValidationError:
        return cls(f"The root value is missing the required field '{name}'.", field=name)


class FatalRemoteError(UpsertError):
    """Raised when the remote API reports an error the pipeline cannot absorb."""

    def __init__(
        self,
        message: str,
        *,
        category: str,
        status_code: int | None = None,
        affected_identifiers: Iterable[str] = (),
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = category
        self.status_code = status_code
        self.affected_identifiers = tuple(affected_identifiers)

    def __str__(self) -> str:
        return f"{self.category}: {self.message}"


class ReconciliationIntegrityError(UpsertError):
    """Raised when a lookup response leaves records without a classification."""

    def __init__(self, identifiers: Iterable[str]) -> None:
        self.identifiers = tuple(identifiers)
        super().__init__(
            "Lookup response did not cover identifiers: " + ", ".join(self.identifiers)
        )


class ConstrainedFieldResetError(FatalRemoteError):
    """Raised when clearing a constrained field failed before its value was re-applied.

    ``restored`` tells whether the compensating write of the previously held
    values went through.
    """

    def __init__(
        self,
        message: str,
        *,
        category: str,
        status_code: int | None = None,
        remote_ids: Iterable[str] = (),
        restored: bool,
    ) -> None:
        super().__init__(message, category=category, status_code=status_code)
        self.remote_ids = tuple(remote_ids)
        self.restored = restored
