"""Abstract base class for short link store implementations."""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional
from datetime import datetime

from .models import ShortLink


class LinkStoreBase(ABC):
    """Abstract base class for persistent short link operations.

    Implementations bound every call with a timeout and raise StoreError
    (or ShortCodeConflictError on duplicate inserts) instead of returning
    sentinel values.
    """

    def __init__(self, db_config: str):
        """Initialize store.

        Args:
            db_config: Database connection string
        """
        self.db_config = db_config

    @abstractmethod
    async def connect(self) -> None:
        """Open connections and verify the store is reachable.

        Raises:
            StoreError: If the store cannot be reached
        """
        pass

    @abstractmethod
    async def insert_link(self, link: ShortLink) -> None:
        """Insert a new short link.

        Args:
            link: The link to persist

        Raises:
            ShortCodeConflictError: If the short code already exists
        """
        pass

    @abstractmethod
    async def find_link(self, short_code: str) -> Optional[ShortLink]:
        """Get a short link by code.

        Args:
            short_code: The short code to lookup

        Returns:
            The link if found (expired or not), None otherwise
        """
        pass

    @abstractmethod
    async def delete_link(self, short_code: str) -> bool:
        """Delete a short link by code.

        Args:
            short_code: The short code to delete

        Returns:
            True if a row was deleted
        """
        pass

    @abstractmethod
    async def delete_expired(self, now: datetime) -> int:
        """Delete every link whose expiry is before `now`.

        Returns:
            Number of deleted links
        """
        pass

    @abstractmethod
    def iter_active(self, now: datetime) -> AsyncIterator[ShortLink]:
        """Lazily iterate over links whose expiry is after `now`."""
        pass

    @abstractmethod
    async def count_links(self, active_at: Optional[datetime] = None) -> int:
        """Count links.

        Args:
            active_at: If given, only count links expiring after this time

        Returns:
            Number of links
        """
        pass

    @abstractmethod
    async def count_created_since(self, subnet: str, since: datetime) -> int:
        """Count links created by `subnet` at or after `since`."""
        pass

    @abstractmethod
    async def count_unique_subnets(self) -> int:
        """Count distinct creator subnets across all stored links."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the store is healthy.

        Returns:
            True if healthy, False otherwise
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close store connections."""
        pass
