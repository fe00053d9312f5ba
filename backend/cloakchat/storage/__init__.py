"""Storage module - provides interface and implementations for data persistence."""

from .interface import StorageInterface
from .local_storage import LocalStorage
from .state_store import StateStore

__all__ = ['StorageInterface', 'LocalStorage', 'StateStore']
