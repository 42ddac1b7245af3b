"""Content Store Port - domain interface for blob storage.

This port defines the contract for storing and retrieving document content.
Adapters implement it for S3-compatible object storage (AWS S3, MinIO).

Architecture: Hexagonal - Port interface in domain layer
"""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import BinaryIO


class ContentStorePort(ABC):
    """Port interface for blob storage operations.

    Objects are addressed by (container_key, object_key). For S3 the
    container is the bucket and the object key is the document's blob_path.

    Key Design Principles:
    - Every operation is a coroutine and bounded by the adapter's timeout
    - Failures (timeouts included) raise StorageError; callers must let it
      reach the transaction boundary so compensation can run
    - put() closes nothing: the caller owns the stream it passes in

    Example Usage:
        store = S3StorageAdapter(...)

        locator = await store.put("documents", "1/2/2026/01/05/ab12.pdf", stream, "application/pdf")
        body = await store.get("documents", "1/2/2026/01/05/ab12.pdf")
    """

    @abstractmethod
    async def put(
        self,
        container_key: str,
        object_key: str,
        stream: BinaryIO,
        content_type: str,
    ) -> str:
        """Upload stream to container_key/object_key.

        Args:
            container_key: Container (bucket) name
            object_key: Object key within the container
            stream: Readable binary stream, read to exhaustion
            content_type: MIME type stored with the object

        Returns:
            str: Stable locator (URI) of the stored object

        Raises:
            StorageError: If the upload fails or times out
        """
        pass

    @abstractmethod
    async def get(self, container_key: str, object_key: str) -> BinaryIO:
        """Open the object for reading.

        Returns:
            BinaryIO: Object stream (caller must close when done)

        Raises:
            FileNotFoundError: If the object doesn't exist
            StorageError: If retrieval fails
        """
        pass

    @abstractmethod
    async def delete(self, container_key: str, object_key: str) -> bool:
        """Delete the object.

        Returns:
            bool: True if the object existed and was deleted, False otherwise

        Raises:
            StorageError: If deletion fails
        """
        pass

    @abstractmethod
    async def exists(self, container_key: str, object_key: str) -> bool:
        """Check whether the object exists.

        Raises:
            StorageError: If the check itself fails (anything but "not found")
        """
        pass

    @abstractmethod
    async def get_temporary_access_uri(
        self,
        container_key: str,
        object_key: str,
        ttl: timedelta,
    ) -> str:
        """Generate a pre-signed URI valid for ttl.

        Raises:
            ValueError: If ttl is not positive
            FileNotFoundError: If the object doesn't exist
            StorageError: If URI generation fails
        """
        pass
