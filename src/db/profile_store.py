"""
Profile document store contract, merge primitives, and in-process backend.

Documents are JSON-compatible dictionaries keyed by profile id. Writes after
creation go through `update`, which takes dot-notation field paths
(e.g. "stats.wordsViewed") mapped to plain values or one of the merge primitives
below, so independent update paths (settings, stats, favorites) never overwrite
each other's fields.
"""
import copy
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from schemas.validators import now_millis

logger = logging.getLogger(__name__)


class ProfileStoreError(Exception):
    """Raised for non-transient profile store failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ProfileStoreUnavailableError(ProfileStoreError):
    """Raised when the store cannot be reached; retrying later may succeed."""


class ProfileNotFoundError(ProfileStoreError):
    """Raised when updating a profile document that does not exist."""

    def __init__(self, profile_id: str) -> None:
        self.profile_id = profile_id
        super().__init__(f"Profile not found: {profile_id}")


@dataclass(frozen=True)
class Increment:
    """Add `amount` to a numeric field; a missing field counts as 0."""

    amount: int | float = 1


class ArrayUnion:
    """Append each value to an array field unless an equal value is already present."""

    def __init__(self, *values: Any) -> None:
        self.values = values

    def __repr__(self) -> str:
        return f"ArrayUnion{self.values!r}"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ArrayUnion) and self.values == other.values


class ArrayRemove:
    """Remove every element equal to any of the values from an array field."""

    def __init__(self, *values: Any) -> None:
        self.values = values

    def __repr__(self) -> str:
        return f"ArrayRemove{self.values!r}"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ArrayRemove) and self.values == other.values


@dataclass(frozen=True)
class ServerTimestamp:
    """Set the field to the store's current time (epoch milliseconds)."""


FieldUpdates = dict[str, Any]


class ProfileStore(Protocol):
    """Document store holding one profile document per identity uid."""

    async def get(self, profile_id: str) -> dict[str, Any] | None:
        """Get a document, None if it does not exist."""
        ...

    async def set(self, profile_id: str, document: dict[str, Any]) -> None:
        """Overwrite the whole document. Only used when creating a profile."""
        ...

    async def update(self, profile_id: str, updates: FieldUpdates) -> None:
        """
        Merge field-path updates into an existing document.

        Raises:
            ProfileNotFoundError: If the document does not exist.
        """
        ...


def apply_field_updates(
    document: dict[str, Any],
    updates: FieldUpdates,
    now_ms: int,
) -> dict[str, Any]:
    """
    Apply field-path updates to a copy of a document.

    Args:
        document: The current document (not modified).
        updates: Mapping of dot-notation paths to values or merge primitives.
        now_ms: Value used for ServerTimestamp fields.

    Returns:
        The updated document.

    Raises:
        ProfileStoreError: If a path traverses a non-object value, or a merge
            primitive targets a field of the wrong type.
    """
    result = copy.deepcopy(document)
    for path, value in updates.items():
        parts = path.split(".")
        parent = result
        for part in parts[:-1]:
            child = parent.get(part)
            if child is None:
                child = {}
                parent[part] = child
            elif not isinstance(child, dict):
                raise ProfileStoreError(f"Cannot update '{path}': '{part}' is not an object")
            parent = child
        leaf = parts[-1]
        parent[leaf] = _resolve_value(path, parent.get(leaf), value, now_ms)
    return result


def _resolve_value(path: str, current: Any, value: Any, now_ms: int) -> Any:
    """Compute the new value of one field."""
    if isinstance(value, ServerTimestamp):
        return now_ms
    if isinstance(value, Increment):
        if current is None:
            return value.amount
        if isinstance(current, bool) or not isinstance(current, int | float):
            raise ProfileStoreError(f"Cannot increment non-numeric field '{path}'")
        return current + value.amount
    if isinstance(value, ArrayUnion | ArrayRemove):
        items = [] if current is None else current
        if not isinstance(items, list):
            raise ProfileStoreError(f"Field '{path}' is not an array")
        if isinstance(value, ArrayRemove):
            return [item for item in items if item not in value.values]
        items = list(items)
        for element in value.values:
            if element not in items:
                items.append(copy.deepcopy(element))
        return items
    return copy.deepcopy(value)


class InMemoryProfileStore:
    """
    Process-local profile store.

    Used for offline development and tests. Every read and write copies the
    document so callers can never mutate stored state by reference.
    """

    def __init__(self) -> None:
        self._documents: dict[str, dict[str, Any]] = {}

    async def get(self, profile_id: str) -> dict[str, Any] | None:
        """Get a copy of a document, None if it does not exist."""
        document = self._documents.get(profile_id)
        return copy.deepcopy(document) if document is not None else None

    async def set(self, profile_id: str, document: dict[str, Any]) -> None:
        """Overwrite the whole document."""
        self._documents[profile_id] = copy.deepcopy(document)
        logger.debug("profile_store_set profile_id=%s", profile_id)

    async def update(self, profile_id: str, updates: FieldUpdates) -> None:
        """Merge field-path updates into an existing document."""
        document = self._documents.get(profile_id)
        if document is None:
            raise ProfileNotFoundError(profile_id)
        self._documents[profile_id] = apply_field_updates(document, updates, now_millis())
        logger.debug(
            "profile_store_update profile_id=%s fields=%s", profile_id, sorted(updates),
        )
