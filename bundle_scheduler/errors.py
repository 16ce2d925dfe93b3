"""Error kinds raised by the bundle-scheduler engine."""

from __future__ import annotations


class EngineError(Exception):
    """Base class for all engine errors."""


class NotFoundError(EngineError):
    """Raised when a referenced template, rule, bundle or task does not exist."""

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class InvalidInputError(EngineError):
    """Raised when input is rejected before any write occurs."""


class InvalidStateError(EngineError):
    """Raised when a task cannot be marked done in its current state."""


class ExpansionError(EngineError):
    """Raised when template expansion fails partway through.

    The tasks written before the failure are kept in ``created``; the
    expansion can be retried safely since it skips definitions that already
    have a task in the bundle.
    """

    def __init__(self, bundle_id: str, ref_id: str, created: list, cause: Exception) -> None:
        super().__init__(
            f"Expansion of bundle {bundle_id} failed at task definition {ref_id!r}: {cause}"
        )
        self.bundle_id = bundle_id
        self.ref_id = ref_id
        self.created = created
