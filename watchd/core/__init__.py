"""Core module for the watchd application."""

from .roles import Role
from .store import Store, get_store
from .types import FirestoreDocument

__all__ = ["FirestoreDocument", "Role", "Store", "get_store"]
