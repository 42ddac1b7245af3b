"""Document lifecycle engine wiring.

Builds a ready DocumentLifecycleManager from Settings: metadata store
engine and session factory, S3 content store, tenant/type validators and
logging. Embedding applications call this once at startup and pass the
manager (or its context) to their request handlers.

Usage:
    runtime = create_runtime()
    doc = await runtime.manager.create_document(...)
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from config import Settings, get_settings
from database import build_engine, build_session_factory
from domain.documents.context import LifecycleContext
from domain.documents.lifecycle_manager import DocumentLifecycleManager
from infrastructure.repositories.tenant_repository import (
    SqlDocumentTypeValidator,
    SqlTenantValidator,
)
from infrastructure.storage.s3_storage_adapter import S3StorageAdapter
from infrastructure.storage.storage_config import load_storage_config
from observability.logging_config import configure_logging
from retention.service import RetentionService

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Long-lived objects shared by every lifecycle call."""
    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    content_store: S3StorageAdapter
    manager: DocumentLifecycleManager
    retention: RetentionService

    def dispose(self) -> None:
        self.engine.dispose()


def create_runtime(
    settings: Optional[Settings] = None,
    cancel_event: Optional[asyncio.Event] = None,
    setup_logging: bool = True,
) -> Runtime:
    """Wire the engine from settings (environment by default).

    cancel_event is the engine-wide shutdown switch; individual calls take
    their own cancel_event.

    Raises:
        ValueError: Storage configuration is invalid
        StorageError: S3 client cannot be created
    """
    settings = settings or get_settings()

    if setup_logging:
        configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)

    engine = build_engine(settings=settings)
    session_factory = build_session_factory(engine)

    storage_config = load_storage_config(settings)
    content_store = S3StorageAdapter.from_config(storage_config)

    context = LifecycleContext(
        session_factory=session_factory,
        content_store=content_store,
        container=storage_config.bucket_name,
        tenants=SqlTenantValidator(session_factory),
        document_types=SqlDocumentTypeValidator(session_factory),
        logger=logging.getLogger("domain.documents.lifecycle"),
        cancel_event=cancel_event,
        spool_max_memory_bytes=settings.SPOOL_MAX_MEMORY_BYTES,
        max_upload_bytes=settings.MAX_UPLOAD_SIZE_BYTES,
        version_conflict_max_retries=settings.VERSION_CONFLICT_MAX_RETRIES,
        default_uri_ttl=timedelta(seconds=settings.PRESIGNED_URL_TTL_SECONDS),
    )
    manager = DocumentLifecycleManager(context)

    logger.info(
        f"Document lifecycle engine ready: environment={settings.ENVIRONMENT}, "
        f"bucket={storage_config.bucket_name}"
    )

    return Runtime(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        content_store=content_store,
        manager=manager,
        retention=RetentionService(manager, session_factory),
    )
