"""Capabilities consumed from outside the engagement core"""
from .record_store import RecordStore, StorageError, DuplicateKeyError, Filter, Sort
from .notifier import Notifier, RenderedMessage, DeliveryResult

__all__ = [
    "RecordStore",
    "StorageError",
    "DuplicateKeyError",
    "Filter",
    "Sort",
    "Notifier",
    "RenderedMessage",
    "DeliveryResult",
]
