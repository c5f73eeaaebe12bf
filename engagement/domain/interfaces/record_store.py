"""
Record Store Interface
Abstract durable keyed storage for appointments, leads and notifications
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple


# Filters are dicts of field -> value, or field -> {operator: value} with
# operators $in, $ne, $gt, $gte, $lt, $lte.
Filter = Dict[str, Any]
# Sort keys are (field, direction) pairs; direction 1 ascending, -1 descending.
Sort = Sequence[Tuple[str, int]]


class StorageError(Exception):
    """Raised when the underlying store fails."""
    pass


class DuplicateKeyError(StorageError):
    """Raised when a write would violate a uniqueness constraint."""

    def __init__(self, collection: str, detail: str = ""):
        self.collection = collection
        self.detail = detail
        super().__init__(f"Duplicate key in {collection}: {detail}" if detail else f"Duplicate key in {collection}")


class RecordStore(ABC):
    """
    Abstract base class for record stores.

    Records are plain dicts carrying a string `id`. Every single-record
    operation is atomic; uniqueness constraints are enforced at write time
    and reported as DuplicateKeyError.
    """

    @abstractmethod
    def insert(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a record and return it with its generated id."""
        pass

    @abstractmethod
    def find_one(self, collection: str, filter: Filter) -> Optional[Dict[str, Any]]:
        """Return the first record matching the filter, or None."""
        pass

    @abstractmethod
    def find(
        self,
        collection: str,
        filter: Optional[Filter] = None,
        sort: Optional[Sort] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Return all records matching the filter."""
        pass

    @abstractmethod
    def update_by_id(
        self,
        collection: str,
        record_id: str,
        patch: Dict[str, Any],
        expected: Optional[Filter] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Apply a patch to one record.

        When `expected` is given the patch is applied only if the record
        still matches it (compare-and-swap). Returns the updated record,
        or None if the id is unknown or the expectation failed.
        """
        pass

    @abstractmethod
    def update_where(self, collection: str, filter: Filter, patch: Dict[str, Any]) -> int:
        """Apply a patch to every matching record; returns the count."""
        pass

    @abstractmethod
    def delete_by_id(self, collection: str, record_id: str) -> bool:
        """Delete one record; returns False if it did not exist."""
        pass

    @abstractmethod
    def count_where(self, collection: str, filter: Optional[Filter] = None) -> int:
        """Count matching records."""
        pass
