"""
Domain interfaces for analytics persistence.
"""
from abc import ABC, abstractmethod
from typing import List

from freshlink.modules.analytics.domain.models import ObjectInfo


class ObjectStorage(ABC):
    """Key/value object store used to persist analytics records."""

    @abstractmethod
    async def put(self, key: str, data: bytes) -> None:
        """
        Store an object, replacing any previous object under the same key.

        Raises:
            StorageError: If the object could not be written
        """
        pass

    @abstractmethod
    async def list(self, prefix: str) -> List[ObjectInfo]:
        """
        List objects whose key starts with ``prefix``.

        Returns:
            Object keys and sizes ordered by key
        """
        pass

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """
        Read an object.

        Raises:
            StorageError: If the object is missing or unreadable
        """
        pass

    async def close(self) -> None:
        return None
