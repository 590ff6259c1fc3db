"""Database layer for URL shortener."""

from .base import LinkStoreBase
from .postgres import PostgresLinkStore
from .models import ShortLink

__all__ = ["LinkStoreBase", "PostgresLinkStore", "ShortLink"]
