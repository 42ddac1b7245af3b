"""Pytest fixtures for the document lifecycle engine.

Provides reusable test fixtures for:
- SQLite metadata store with the full schema and seeded tenants/types
- moto-backed S3 bucket and S3StorageAdapter
- A fault-injecting content store wrapper
- A DocumentLifecycleManager wired to all of the above

Usage:
    @pytest.mark.asyncio
    async def test_create(manager, seeded):
        doc = await manager.create_document(...)
"""

import asyncio
import io
import os
import sys
from pathlib import Path
from typing import Any, BinaryIO, Callable, Optional, Set

# Fake AWS credentials BEFORE boto3 is imported anywhere
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")

backend_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(backend_src))

import boto3
import pytest
from moto import mock_aws

from config import Settings
from database import build_engine, build_session_factory
from domain.documents.context import LifecycleContext
from domain.documents.errors import StorageError
from domain.documents.lifecycle_manager import DocumentLifecycleManager
from domain.documents.ports.object_storage_port import ContentStorePort
from infrastructure.repositories.tenant_repository import (
    SqlDocumentTypeValidator,
    SqlTenantValidator,
)
from infrastructure.storage.s3_storage_adapter import S3StorageAdapter
from models import Base, DocumentType, Tenant


TEST_BUCKET = "test-documents"
TEST_REGION = "us-east-1"
TEST_ACCESS_KEY = "testing"
TEST_SECRET_KEY = "testing"


# ----------------------------------------------------------------------
# Metadata store
# ----------------------------------------------------------------------

@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite engine with the full schema (one connection per session)."""
    engine = build_engine(f"sqlite:///{tmp_path / 'documents.db'}", settings=Settings())
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def seeded(session_factory):
    """Tenants and document types referenced by document rows.

    Returns a dict of ids:
        tenant_id, other_tenant_id, inactive_tenant_id,
        document_type_id (with extension payload), plain_type_id,
        inactive_type_id
    """
    with session_factory() as session:
        tenant = Tenant(name="Acme", slug="acme")
        other = Tenant(name="Globex", slug="globex", retention_policies_json={"soft_delete_grace_period_days": 7})
        inactive = Tenant(name="Dormant", slug="dormant", is_active=False)
        invoice = DocumentType(name="invoice", display_name="Invoice", has_extension_table=True)
        memo = DocumentType(name="memo", display_name="Memo")
        retired = DocumentType(name="retired", display_name="Retired", is_active=False)
        session.add_all([tenant, other, inactive, invoice, memo, retired])
        session.commit()

        return {
            "tenant_id": tenant.id,
            "other_tenant_id": other.id,
            "inactive_tenant_id": inactive.id,
            "document_type_id": invoice.id,
            "plain_type_id": memo.id,
            "inactive_type_id": retired.id,
        }


# ----------------------------------------------------------------------
# Content store
# ----------------------------------------------------------------------

@pytest.fixture
def s3_bucket():
    """Mock S3 environment with an empty bucket"""
    with mock_aws():
        s3_client = boto3.client(
            "s3",
            region_name=TEST_REGION,
            aws_access_key_id=TEST_ACCESS_KEY,
            aws_secret_access_key=TEST_SECRET_KEY,
        )
        s3_client.create_bucket(Bucket=TEST_BUCKET)

        yield s3_client


@pytest.fixture
def storage_adapter(s3_bucket):
    """S3StorageAdapter against the mock bucket"""
    return S3StorageAdapter(
        endpoint_url=None,  # AWS S3 (moto mocks this)
        access_key=TEST_ACCESS_KEY,
        secret_key=TEST_SECRET_KEY,
        region=TEST_REGION,
        call_timeout_seconds=5.0,
    )


class FaultInjectingStore(ContentStorePort):
    """Delegating content store that can fail, hang or call back per operation.

    Attributes:
        fail_on: Operation names that raise StorageError before delegating
        hang_on: Operation names that block until the task is cancelled
        after_put: Called once put() has completed on the real store
        calls: Operation names in call order
    """

    def __init__(self, inner: ContentStorePort):
        self.inner = inner
        self.fail_on: Set[str] = set()
        self.hang_on: Set[str] = set()
        self.after_put: Optional[Callable[[], Any]] = None
        self.calls = []
        self.put_started = asyncio.Event()

    async def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise StorageError(f"Injected {operation} failure")
        if operation in self.hang_on:
            if operation == "put":
                self.put_started.set()
            await asyncio.Event().wait()

    async def put(self, container_key: str, object_key: str, stream: BinaryIO, content_type: str) -> str:
        await self._enter("put")
        locator = await self.inner.put(container_key, object_key, stream, content_type)
        if self.after_put is not None:
            self.after_put()
        return locator

    async def get(self, container_key: str, object_key: str) -> BinaryIO:
        await self._enter("get")
        return await self.inner.get(container_key, object_key)

    async def delete(self, container_key: str, object_key: str) -> bool:
        await self._enter("delete")
        return await self.inner.delete(container_key, object_key)

    async def exists(self, container_key: str, object_key: str) -> bool:
        await self._enter("exists")
        return await self.inner.exists(container_key, object_key)

    async def get_temporary_access_uri(self, container_key, object_key, ttl):
        await self._enter("get_temporary_access_uri")
        return await self.inner.get_temporary_access_uri(container_key, object_key, ttl)


@pytest.fixture
def content_store(storage_adapter):
    return FaultInjectingStore(storage_adapter)


# ----------------------------------------------------------------------
# Lifecycle engine
# ----------------------------------------------------------------------

@pytest.fixture
def lifecycle_context(session_factory, content_store, seeded):
    return LifecycleContext(
        session_factory=session_factory,
        content_store=content_store,
        container=TEST_BUCKET,
        tenants=SqlTenantValidator(session_factory),
        document_types=SqlDocumentTypeValidator(session_factory),
        cancel_event=asyncio.Event(),
        spool_max_memory_bytes=1024,
        max_upload_bytes=1024 * 1024,
    )


@pytest.fixture
def manager(lifecycle_context):
    return DocumentLifecycleManager(lifecycle_context)


@pytest.fixture
def blob_exists(s3_bucket):
    """Check object presence directly against the mock bucket."""
    def _exists(blob_path: str) -> bool:
        response = s3_bucket.list_objects_v2(Bucket=TEST_BUCKET, Prefix=blob_path)
        return any(item["Key"] == blob_path for item in response.get("Contents", []))
    return _exists


@pytest.fixture
def read_blob(s3_bucket):
    def _read(blob_path: str) -> bytes:
        return s3_bucket.get_object(Bucket=TEST_BUCKET, Key=blob_path)["Body"].read()
    return _read


@pytest.fixture
def create_invoice(manager, seeded):
    """Create a document in the seeded tenant with the given content."""
    async def _create(content: bytes = b"A", title: str = "Invoice-001", **overrides):
        kwargs = dict(
            tenant_id=seeded["tenant_id"],
            document_type_id=seeded["document_type_id"],
            title=title,
            description="Monthly invoice",
            content_stream=io.BytesIO(content),
            file_name="invoice.pdf",
            mime_type="application/pdf",
            actor="alice",
        )
        kwargs.update(overrides)
        return await manager.create_document(**kwargs)
    return _create
