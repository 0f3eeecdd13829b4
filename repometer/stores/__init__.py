"""Persistence backends for repometer."""

from .repository_store import RepositoryStore, StoreError

__all__ = ["RepositoryStore", "StoreError"]
