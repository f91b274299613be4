"""Storage backends for raw records and summary snapshots."""

from pj_summary.storage.api import StorageAPIClient
from pj_summary.storage.base import StorageProvider
from pj_summary.storage.memory import InMemoryStorage

__all__ = ["StorageProvider", "InMemoryStorage", "StorageAPIClient"]
