"""S3 Storage Adapter - Implementation of ContentStorePort using boto3.

Provides S3-compatible storage operations for AWS S3, MinIO, and other S3-compatible services.
boto3 is blocking, so every call runs in the default executor under a timeout;
a timeout surfaces as StorageError like any other store failure.

Architecture: Hexagonal - Adapter implementation in infrastructure layer
"""

import asyncio
import functools
import logging
from datetime import timedelta
from typing import Any, BinaryIO, Callable, Optional

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from domain.documents.errors import StorageError
from domain.documents.ports.object_storage_port import ContentStorePort

from .storage_config import StorageConfig

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "Unknown")


class S3StorageAdapter(ContentStorePort):
    """S3-compatible content store using boto3.

    Features:
    - Streaming uploads via upload_fileobj (multipart for large files)
    - Bounded call time (call_timeout_seconds) on every operation
    - Presigned URLs for direct downloads

    Example:
        config = load_storage_config()
        storage = S3StorageAdapter.from_config(config)

        locator = await storage.put(config.bucket_name, "1/2/2026/01/05/ab12.pdf", f, "application/pdf")
    """

    def __init__(
        self,
        endpoint_url: Optional[str],
        access_key: str,
        secret_key: str,
        region: str = "us-east-1",
        call_timeout_seconds: float = 30.0,
    ):
        """Initialize S3 storage adapter.

        Args:
            endpoint_url: S3 endpoint URL (None for AWS S3, URL for MinIO)
            access_key: S3 access key ID
            secret_key: S3 secret access key
            region: AWS region (default: 'us-east-1')
            call_timeout_seconds: Upper bound for each store call

        Raises:
            StorageError: If S3 client initialization fails
        """
        try:
            self.s3_client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                region_name=region,
                config=BotoConfig(
                    connect_timeout=call_timeout_seconds,
                    read_timeout=call_timeout_seconds,
                ),
            )
            self.endpoint_url = endpoint_url
            self.region = region
            self.call_timeout_seconds = call_timeout_seconds

            logger.info(
                f"Initialized S3 storage adapter: endpoint={endpoint_url or 'AWS S3'}, "
                f"region={region}, timeout={call_timeout_seconds}s"
            )
        except NoCredentialsError as e:
            raise StorageError(f"Invalid S3 credentials: {e}")
        except Exception as e:
            raise StorageError(f"Failed to initialize S3 client: {e}")

    @classmethod
    def from_config(cls, config: StorageConfig) -> "S3StorageAdapter":
        return cls(
            endpoint_url=config.endpoint_url,
            access_key=config.access_key,
            secret_key=config.secret_key,
            region=config.region,
            call_timeout_seconds=config.call_timeout_seconds,
        )

    async def _run(self, operation: str, fn: Callable[..., Any], **kwargs: Any) -> Any:
        """Run a blocking boto3 call in the executor, bounded by the call timeout."""
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, functools.partial(fn, **kwargs)),
                timeout=self.call_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(f"S3 {operation} timed out after {self.call_timeout_seconds}s")
            raise StorageError(
                f"S3 {operation} timed out after {self.call_timeout_seconds}s",
                details={"operation": operation, "timeout": True},
            )

    async def put(
        self,
        container_key: str,
        object_key: str,
        stream: BinaryIO,
        content_type: str,
    ) -> str:
        """Upload stream to S3.

        Returns:
            str: Locator in format s3://{bucket}/{key}

        Raises:
            StorageError: If upload fails or times out
        """
        try:
            await self._run(
                "put",
                self.s3_client.upload_fileobj,
                Fileobj=stream,
                Bucket=container_key,
                Key=object_key,
                ExtraArgs={"ContentType": content_type},
            )
        except StorageError:
            raise
        except ClientError as e:
            error_code = _error_code(e)
            logger.error(
                f"S3 upload failed: bucket={container_key}, key={object_key}, "
                f"error={error_code}, message={e}"
            )
            raise StorageError(f"Failed to upload object: {error_code}")
        except (S3UploadFailedError, BotoCoreError, OSError) as e:
            logger.error(f"Unexpected error during upload: key={object_key}, error={e}")
            raise StorageError(f"Failed to upload object: {e}")

        logger.info(
            f"Uploaded object: bucket={container_key}, key={object_key}, content_type={content_type}"
        )
        return f"s3://{container_key}/{object_key}"

    async def get(self, container_key: str, object_key: str) -> BinaryIO:
        """Open an object from S3.

        Returns:
            BinaryIO: Streaming body (caller must close)

        Raises:
            FileNotFoundError: If object doesn't exist
            StorageError: If retrieval fails
        """
        try:
            response = await self._run(
                "get",
                self.s3_client.get_object,
                Bucket=container_key,
                Key=object_key,
            )
        except StorageError:
            raise
        except ClientError as e:
            error_code = _error_code(e)
            if error_code in _NOT_FOUND_CODES:
                logger.warning(f"Object not found: bucket={container_key}, key={object_key}")
                raise FileNotFoundError(f"Object not found: {object_key}")
            logger.error(
                f"S3 retrieval failed: bucket={container_key}, key={object_key}, error={error_code}"
            )
            raise StorageError(f"Failed to retrieve object: {error_code}")
        except BotoCoreError as e:
            logger.error(f"Unexpected error during retrieval: key={object_key}, error={e}")
            raise StorageError(f"Failed to retrieve object: {e}")

        logger.info(f"Retrieved object: bucket={container_key}, key={object_key}")
        return response["Body"]

    async def delete(self, container_key: str, object_key: str) -> bool:
        """Delete an object from S3.

        Returns:
            bool: True if deleted, False if it didn't exist

        Raises:
            StorageError: If deletion fails
        """
        if not await self.exists(container_key, object_key):
            logger.info(f"Object not found for deletion: bucket={container_key}, key={object_key}")
            return False

        try:
            await self._run(
                "delete",
                self.s3_client.delete_object,
                Bucket=container_key,
                Key=object_key,
            )
        except StorageError:
            raise
        except ClientError as e:
            error_code = _error_code(e)
            logger.error(
                f"S3 deletion failed: bucket={container_key}, key={object_key}, error={error_code}"
            )
            raise StorageError(f"Failed to delete object: {error_code}")
        except BotoCoreError as e:
            logger.error(f"Unexpected error during deletion: key={object_key}, error={e}")
            raise StorageError(f"Failed to delete object: {e}")

        logger.info(f"Deleted object: bucket={container_key}, key={object_key}")
        return True

    async def exists(self, container_key: str, object_key: str) -> bool:
        """Check if an object exists (HEAD request).

        Raises:
            StorageError: On any failure other than "not found"
        """
        try:
            await self._run(
                "exists",
                self.s3_client.head_object,
                Bucket=container_key,
                Key=object_key,
            )
            return True
        except StorageError:
            raise
        except ClientError as e:
            error_code = _error_code(e)
            if error_code in _NOT_FOUND_CODES:
                return False
            logger.error(
                f"Error checking object existence: bucket={container_key}, "
                f"key={object_key}, error={error_code}"
            )
            raise StorageError(f"Failed to check object existence: {error_code}")
        except BotoCoreError as e:
            logger.error(f"Unexpected error checking existence: key={object_key}, error={e}")
            raise StorageError(f"Failed to check object existence: {e}")

    async def get_temporary_access_uri(
        self,
        container_key: str,
        object_key: str,
        ttl: timedelta,
    ) -> str:
        """Generate a presigned GET URL.

        Raises:
            ValueError: If ttl is not positive
            FileNotFoundError: If object doesn't exist
            StorageError: If URL generation fails
        """
        expires_in_seconds = int(ttl.total_seconds())
        if expires_in_seconds <= 0:
            raise ValueError("Expiration duration must be greater than zero")

        if not await self.exists(container_key, object_key):
            raise FileNotFoundError(f"Object not found: {object_key}")

        try:
            url = await self._run(
                "presign",
                self.s3_client.generate_presigned_url,
                ClientMethod="get_object",
                Params={"Bucket": container_key, "Key": object_key},
                ExpiresIn=expires_in_seconds,
            )
        except StorageError:
            raise
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Presigned URL generation failed: key={object_key}, error={e}")
            raise StorageError(f"Failed to generate presigned URL: {e}")

        logger.info(
            f"Generated presigned URL: bucket={container_key}, key={object_key}, "
            f"expires_in={expires_in_seconds}s"
        )
        return url

    async def verify_container_exists(self, container_key: str) -> bool:
        """Verify that the bucket exists.

        Call on application startup to fail fast on a missing bucket.

        Raises:
            StorageError: If bucket check fails or bucket doesn't exist
        """
        try:
            await self._run("head_bucket", self.s3_client.head_bucket, Bucket=container_key)
            logger.info(f"Verified bucket exists: {container_key}")
            return True
        except StorageError:
            raise
        except ClientError as e:
            error_code = _error_code(e)
            if error_code in _NOT_FOUND_CODES | {"NoSuchBucket"}:
                raise StorageError(
                    f"Bucket '{container_key}' does not exist. "
                    f"Create it first or update S3_BUCKET_NAME environment variable."
                )
            raise StorageError(f"Failed to verify bucket: {error_code}")
        except BotoCoreError as e:
            raise StorageError(f"Failed to verify bucket: {e}")
