"""Integration tests for DocumentLifecycleManager

Runs the full engine against a SQLite metadata store and a moto-mocked S3
bucket: creation, version chains, deduplication, soft delete / restore,
archive and permanent delete.
"""

import hashlib
import io

import pytest

from domain.documents.errors import (
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from domain.documents.schemas import DocumentMetadataUpdate
from infrastructure.repositories.document_repository import DocumentRepository


def sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def chain_rows(session_factory, root_id):
    with session_factory() as session:
        return DocumentRepository(session).get_chain(root_id)


class TestInvoiceScenario:
    """End-to-end walk through a single logical document"""

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, manager, create_invoice, session_factory, blob_exists):
        v1 = await create_invoice(b"A")
        assert v1.version == 1
        assert v1.is_current_version is True
        assert v1.parent_document_id is None
        assert v1.content_hash == sha256(b"A")

        v2 = await manager.create_version(v1.id, io.BytesIO(b"B"), "invoice.pdf", "application/pdf", actor="bob")
        rows = chain_rows(session_factory, v1.id)
        assert [(row.version, row.is_current_version) for row in rows] == [(1, False), (2, True)]
        assert v2.content_hash == sha256(b"B")
        assert v2.parent_document_id == v1.id

        again = await manager.create_version(v1.id, io.BytesIO(b"B"), "invoice.pdf", "application/pdf")
        assert again.id == v2.id
        assert again.version == 2
        assert len(chain_rows(session_factory, v1.id)) == 2

        await manager.soft_delete(v2.id, actor="bob", reason="superseded")
        deleted = await manager.get_document(v2.id, include_deleted=True)
        assert deleted.is_deleted is True
        assert deleted.is_current_version is True

        duplicates = await manager.find_duplicates(sha256(b"B"))
        assert [doc.id for doc in duplicates] == [v2.id]

        await manager.permanently_delete(v2.id)
        with pytest.raises(NotFoundError):
            await manager.get_document(v2.id, include_deleted=True)
        assert not blob_exists(v2.blob_path)

        # Remaining version takes over as current
        current = await manager.get_current_version(v1.id)
        assert current.id == v1.id
        assert blob_exists(v1.blob_path)


class TestCreateDocument:
    """Test document creation and pre-I/O validation"""

    @pytest.mark.asyncio
    async def test_stored_content_matches_hash(self, create_invoice, read_blob):
        content = b"%PDF-1.7 " + b"x" * 5000  # larger than the in-memory spool
        doc = await create_invoice(content)

        assert doc.file_size_bytes == len(content)
        assert sha256(read_blob(doc.blob_path)) == doc.content_hash

    @pytest.mark.asyncio
    async def test_blob_path_layout(self, create_invoice, seeded):
        doc = await create_invoice(b"layout")

        parts = doc.blob_path.split("/")
        assert parts[0] == str(seeded["tenant_id"])
        assert parts[1] == str(seeded["document_type_id"])
        assert parts[-1] == f"{sha256(b'layout')}.pdf"

    @pytest.mark.asyncio
    async def test_caller_stream_closed(self, create_invoice):
        stream = io.BytesIO(b"close me")
        await create_invoice(content_stream=stream)
        assert stream.closed

    @pytest.mark.asyncio
    async def test_blank_title_rejected_before_io(self, create_invoice, content_store, session_factory):
        stream = io.BytesIO(b"A")
        with pytest.raises(ValidationError) as exc:
            await create_invoice(title="   ", content_stream=stream)

        assert exc.value.details["field"] == "title"
        assert content_store.calls == []
        assert stream.closed

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field,value", [("title", 123), ("file_name", 7), ("mime_type", 42)])
    async def test_non_string_fields_rejected_before_io(self, create_invoice, content_store, field, value):
        with pytest.raises(ValidationError) as exc:
            await create_invoice(**{field: value})

        assert exc.value.details["field"] == field
        assert content_store.calls == []

    @pytest.mark.asyncio
    async def test_empty_content_rejected_before_io(self, create_invoice, content_store):
        with pytest.raises(ValidationError):
            await create_invoice(b"")
        assert content_store.calls == []

    @pytest.mark.asyncio
    async def test_missing_stream_rejected(self, create_invoice):
        with pytest.raises(ValidationError):
            await create_invoice(content_stream=None)

    @pytest.mark.asyncio
    async def test_unknown_tenant(self, create_invoice, content_store):
        with pytest.raises(NotFoundError):
            await create_invoice(tenant_id=9999)
        assert content_store.calls == []

    @pytest.mark.asyncio
    async def test_inactive_tenant(self, create_invoice, seeded):
        with pytest.raises(ConflictError):
            await create_invoice(tenant_id=seeded["inactive_tenant_id"])

    @pytest.mark.asyncio
    async def test_inactive_document_type(self, create_invoice, seeded):
        with pytest.raises(ConflictError):
            await create_invoice(document_type_id=seeded["inactive_type_id"])

    @pytest.mark.asyncio
    async def test_identical_uploads_share_blob(self, create_invoice, blob_exists, manager):
        first = await create_invoice(b"same bytes", title="First")
        second = await create_invoice(b"same bytes", title="Second")

        assert first.id != second.id
        assert first.blob_path == second.blob_path

        # Removing one reference keeps the blob for the other
        await manager.permanently_delete(first.id)
        assert blob_exists(second.blob_path)


class TestCreateVersion:
    """Test version chain growth and deduplication"""

    @pytest.mark.asyncio
    async def test_versions_are_contiguous(self, manager, create_invoice, session_factory):
        root = await create_invoice(b"v1")
        for n in range(2, 6):
            # Any row of the chain can be used as the target
            target = root.id if n % 2 else (await manager.get_current_version(root.id)).id
            await manager.create_version(target, io.BytesIO(f"v{n}".encode()), "invoice.pdf", "application/pdf")

            rows = chain_rows(session_factory, root.id)
            assert [row.version for row in rows] == list(range(1, n + 1))
            assert sum(1 for row in rows if row.is_current_version) == 1
            assert rows[-1].is_current_version
            assert all(row.parent_document_id == root.id for row in rows[1:])

    @pytest.mark.asyncio
    async def test_dedup_against_current_only(self, manager, create_invoice, session_factory):
        root = await create_invoice(b"A")
        await manager.create_version(root.id, io.BytesIO(b"B"), "invoice.pdf", "application/pdf")

        # "A" matches an older version, not the current one
        v3 = await manager.create_version(root.id, io.BytesIO(b"A"), "invoice.pdf", "application/pdf")
        assert v3.version == 3
        assert v3.content_hash == root.content_hash
        assert len(chain_rows(session_factory, root.id)) == 3

    @pytest.mark.asyncio
    async def test_dedup_does_not_touch_blob_store(self, manager, create_invoice, content_store):
        root = await create_invoice(b"A")
        content_store.calls.clear()

        result = await manager.create_version(root.id, io.BytesIO(b"A"), "invoice.pdf", "application/pdf")
        assert result.id == root.id
        assert content_store.calls == []

    @pytest.mark.asyncio
    async def test_version_copies_presentation_fields(self, manager, create_invoice):
        root = await create_invoice(b"A", metadata={"amount": 10}, tags=["finance"])
        v2 = await manager.create_version(root.id, io.BytesIO(b"B"), "invoice-v2.pdf", "application/pdf", actor="bob")

        assert v2.title == root.title
        assert v2.metadata_json == {"amount": 10}
        assert v2.tags == ["finance"]
        assert v2.original_file_name == "invoice-v2.pdf"
        assert v2.created_by == "bob"
        assert v2.tenant_id == root.tenant_id

    @pytest.mark.asyncio
    async def test_unknown_document(self, manager):
        stream = io.BytesIO(b"B")
        with pytest.raises(NotFoundError):
            await manager.create_version(424242, stream, "invoice.pdf", "application/pdf")
        assert stream.closed

    @pytest.mark.asyncio
    async def test_deleted_document_rejected(self, manager, create_invoice):
        root = await create_invoice(b"A")
        await manager.soft_delete(root.id)

        with pytest.raises(ConflictError):
            await manager.create_version(root.id, io.BytesIO(b"B"), "invoice.pdf", "application/pdf")

    @pytest.mark.asyncio
    async def test_archived_chain_stays_archived(self, manager, create_invoice):
        root = await create_invoice(b"A")
        await manager.archive(root.id)

        v2 = await manager.create_version(root.id, io.BytesIO(b"B"), "invoice.pdf", "application/pdf")
        assert v2.is_archived is True


class TestSoftDeleteRestore:
    """Test reversible deletion"""

    @pytest.mark.asyncio
    async def test_round_trip(self, manager, create_invoice, blob_exists):
        doc = await create_invoice(b"A")
        assert blob_exists(doc.blob_path)

        await manager.soft_delete(doc.id, actor="alice", reason="mistake")
        deleted = await manager.get_document(doc.id, include_deleted=True)
        assert deleted.is_deleted is True
        assert deleted.deleted_by == "alice"
        assert deleted.deleted_reason == "mistake"
        assert deleted.deleted_at is not None
        assert blob_exists(doc.blob_path)

        await manager.restore(doc.id, actor="alice")
        restored = await manager.get_document(doc.id)
        assert restored.is_deleted is False
        assert restored.deleted_at is None
        assert restored.deleted_by is None
        assert restored.deleted_reason is None
        assert blob_exists(doc.blob_path)

        for field in ("title", "description", "content_hash", "blob_path", "version",
                      "is_current_version", "is_archived", "file_size_bytes"):
            assert getattr(restored, field) == getattr(doc, field)

    @pytest.mark.asyncio
    async def test_deleted_hidden_from_default_reads(self, manager, create_invoice, seeded):
        doc = await create_invoice(b"A")
        await manager.soft_delete(doc.id)

        with pytest.raises(NotFoundError):
            await manager.get_document(doc.id)
        assert await manager.list_documents(seeded["tenant_id"]) == []
        assert len(await manager.list_documents(seeded["tenant_id"], include_deleted=True)) == 1

    @pytest.mark.asyncio
    async def test_soft_delete_is_idempotent(self, manager, create_invoice):
        doc = await create_invoice(b"A")
        await manager.soft_delete(doc.id, actor="alice", reason="first")
        await manager.soft_delete(doc.id, actor="bob", reason="second")

        deleted = await manager.get_document(doc.id, include_deleted=True)
        assert deleted.deleted_by == "alice"
        assert deleted.deleted_reason == "first"

    @pytest.mark.asyncio
    async def test_restore_live_document_conflicts(self, manager, create_invoice):
        doc = await create_invoice(b"A")
        with pytest.raises(ConflictError):
            await manager.restore(doc.id)

    @pytest.mark.asyncio
    async def test_soft_delete_unknown(self, manager):
        with pytest.raises(NotFoundError):
            await manager.soft_delete(31337)


class TestArchive:
    """Test archive flag and its interaction with deletion"""

    @pytest.mark.asyncio
    async def test_archive_deleted_conflicts(self, manager, create_invoice):
        doc = await create_invoice(b"A")
        await manager.soft_delete(doc.id)

        with pytest.raises(ConflictError):
            await manager.archive(doc.id)

    @pytest.mark.asyncio
    async def test_soft_delete_keeps_archive_flag(self, manager, create_invoice):
        doc = await create_invoice(b"A")
        await manager.archive(doc.id)
        await manager.soft_delete(doc.id)

        result = await manager.get_document(doc.id, include_deleted=True)
        assert result.is_deleted is True
        assert result.is_archived is True

        await manager.restore(doc.id)
        result = await manager.get_document(doc.id)
        assert result.is_archived is True

    @pytest.mark.asyncio
    async def test_unarchive(self, manager, create_invoice):
        doc = await create_invoice(b"A")
        await manager.archive(doc.id)
        await manager.archive(doc.id)  # no-op

        await manager.unarchive(doc.id)
        result = await manager.get_document(doc.id)
        assert result.is_archived is False
        assert result.archived_at is None

        with pytest.raises(ConflictError):
            await manager.unarchive(doc.id)

    @pytest.mark.asyncio
    async def test_archived_excluded_on_request(self, manager, create_invoice, seeded):
        doc = await create_invoice(b"A")
        await manager.archive(doc.id)

        assert await manager.list_documents(seeded["tenant_id"], include_archived=False) == []
        assert [d.id for d in await manager.list_documents(seeded["tenant_id"])] == [doc.id]


class TestPermanentDelete:
    """Test irreversible removal of rows and blobs"""

    @pytest.mark.asyncio
    async def test_removes_row_and_blob(self, manager, create_invoice, blob_exists):
        doc = await create_invoice(b"A")
        await manager.soft_delete(doc.id)

        await manager.permanently_delete(doc.id)

        with pytest.raises(NotFoundError):
            await manager.get_document(doc.id, include_deleted=True)
        assert not blob_exists(doc.blob_path)

    @pytest.mark.asyncio
    async def test_blob_delete_failure_keeps_row(self, manager, create_invoice, content_store, blob_exists):
        doc = await create_invoice(b"A")
        content_store.fail_on.add("delete")

        with pytest.raises(StorageError):
            await manager.permanently_delete(doc.id)

        survivor = await manager.get_document(doc.id)
        assert survivor.id == doc.id
        assert blob_exists(doc.blob_path)

    @pytest.mark.asyncio
    async def test_live_document_can_be_purged(self, manager, create_invoice, caplog):
        doc = await create_invoice(b"A")

        await manager.permanently_delete(doc.id)

        with pytest.raises(NotFoundError):
            await manager.get_document(doc.id, include_deleted=True)
        assert "never soft-deleted" in caplog.text

    @pytest.mark.asyncio
    async def test_root_with_versions_conflicts(self, manager, create_invoice):
        root = await create_invoice(b"A")
        await manager.create_version(root.id, io.BytesIO(b"B"), "invoice.pdf", "application/pdf")

        with pytest.raises(ConflictError):
            await manager.permanently_delete(root.id)

    @pytest.mark.asyncio
    async def test_whole_chain_top_down(self, manager, create_invoice, session_factory):
        root = await create_invoice(b"A")
        v2 = await manager.create_version(root.id, io.BytesIO(b"B"), "invoice.pdf", "application/pdf")

        await manager.permanently_delete(v2.id)
        await manager.permanently_delete(root.id)

        assert chain_rows(session_factory, root.id) == []

    @pytest.mark.asyncio
    async def test_removes_extension_payload(self, manager, create_invoice):
        doc = await create_invoice(b"A")
        await manager.set_extension_payload(doc.id, {"invoice_number": "INV-1"})

        await manager.permanently_delete(doc.id)

        with pytest.raises(NotFoundError):
            await manager.get_extension_payload(doc.id)


class TestReads:
    """Test lookups, listings and content access"""

    @pytest.mark.asyncio
    async def test_find_duplicates_across_tenants(self, manager, create_invoice, seeded):
        mine = await create_invoice(b"shared")
        theirs = await create_invoice(b"shared", tenant_id=seeded["other_tenant_id"])

        found = await manager.find_duplicates(sha256(b"shared").upper())
        assert {doc.id for doc in found} == {mine.id, theirs.id}

    @pytest.mark.asyncio
    async def test_find_duplicates_requires_hash(self, manager):
        with pytest.raises(ValidationError):
            await manager.find_duplicates("  ")

    @pytest.mark.asyncio
    async def test_list_and_count_current_versions(self, manager, create_invoice, seeded):
        first = await create_invoice(b"1", title="First")
        await create_invoice(b"2", title="Second", document_type_id=seeded["plain_type_id"])
        await manager.create_version(first.id, io.BytesIO(b"1b"), "invoice.pdf", "application/pdf")

        assert await manager.count_documents(seeded["tenant_id"]) == 2
        invoices = await manager.list_documents(seeded["tenant_id"], document_type_id=seeded["document_type_id"])
        assert [(doc.title, doc.version) for doc in invoices] == [("First", 2)]

    @pytest.mark.asyncio
    async def test_get_versions(self, manager, create_invoice):
        root = await create_invoice(b"A")
        v2 = await manager.create_version(root.id, io.BytesIO(b"B"), "invoice.pdf", "application/pdf")

        versions = await manager.get_versions(v2.id)
        assert [doc.id for doc in versions] == [root.id, v2.id]

    @pytest.mark.asyncio
    async def test_to_dict(self, manager, create_invoice):
        root = await create_invoice(b"A")
        v2 = await manager.create_version(root.id, io.BytesIO(b"B"), "invoice.pdf", "application/pdf")

        data = v2.to_dict()
        assert data["version"] == 2
        assert data["parent_document_id"] == root.id
        assert data["is_current_version"] is True
        assert data["deleted_at"] is None
        assert data["content_hash"] == v2.content_hash

    @pytest.mark.asyncio
    async def test_open_content(self, manager, create_invoice):
        doc = await create_invoice(b"hello content")

        body = await manager.open_content(doc.id)
        try:
            assert body.read() == b"hello content"
        finally:
            body.close()

    @pytest.mark.asyncio
    async def test_download_uri(self, manager, create_invoice):
        doc = await create_invoice(b"A")

        uri = await manager.get_download_uri(doc.id)
        assert doc.blob_path in uri
        assert "Expires" in uri or "X-Amz-Expires" in uri


class TestMetadataAndExtensions:
    """Test metadata updates, extension payloads and index staleness"""

    @pytest.mark.asyncio
    async def test_update_metadata(self, manager, create_invoice):
        doc = await create_invoice(b"A")

        updated = await manager.update_metadata(
            doc.id,
            DocumentMetadataUpdate(title="Invoice-001 (final)", tags=[" finance ", ""]),
            actor="carol",
        )
        assert updated.title == "Invoice-001 (final)"
        assert updated.tags == ["finance"]
        assert updated.description == "Monthly invoice"
        assert updated.updated_by == "carol"

    @pytest.mark.asyncio
    async def test_update_metadata_on_deleted_conflicts(self, manager, create_invoice):
        doc = await create_invoice(b"A")
        await manager.soft_delete(doc.id)

        with pytest.raises(ConflictError):
            await manager.update_metadata(doc.id, DocumentMetadataUpdate(title="x"))

    @pytest.mark.asyncio
    async def test_extension_payload(self, manager, create_invoice):
        doc = await create_invoice(b"A")
        assert await manager.get_extension_payload(doc.id) is None

        await manager.set_extension_payload(doc.id, {"invoice_number": "INV-1"})
        await manager.set_extension_payload(doc.id, {"invoice_number": "INV-2"})

        assert await manager.get_extension_payload(doc.id) == {"invoice_number": "INV-2"}

    @pytest.mark.asyncio
    async def test_extension_payload_requires_typed_document(self, manager, create_invoice, seeded):
        doc = await create_invoice(b"A", document_type_id=seeded["plain_type_id"])

        with pytest.raises(ConflictError):
            await manager.set_extension_payload(doc.id, {"anything": True})

    @pytest.mark.asyncio
    async def test_index_staleness(self, manager, create_invoice):
        doc = await create_invoice(b"A")
        assert [d.id for d in await manager.list_needing_indexing()] == [doc.id]

        await manager.mark_indexed(doc.id, "search-1")
        assert await manager.list_needing_indexing() == []
        stats = await manager.get_index_stats()
        assert (stats.total_documents, stats.indexed_documents, stats.documents_needing_indexing) == (1, 1, 0)

        await manager.update_metadata(doc.id, DocumentMetadataUpdate(description="changed"))
        assert [d.id for d in await manager.list_needing_indexing()] == [doc.id]

        assert await manager.clear_index_linkage() == 1
        stats = await manager.get_index_stats()
        assert stats.indexed_documents == 0

    @pytest.mark.asyncio
    async def test_mark_indexed_unknown(self, manager):
        with pytest.raises(NotFoundError):
            await manager.mark_indexed(999, "search-x")
