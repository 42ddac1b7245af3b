"""Tenant model - isolation boundary for documents.

Tenant administration lives outside the lifecycle engine; the engine only
reads this table to confirm a tenant exists and is active.
"""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, Text, text
from sqlalchemy.orm import validates
from sqlalchemy.types import DateTime
import re

from .base import Base, PortableJSONB, utcnow


class Tenant(Base):
    """Tenant row. Supports a parent/child hierarchy via parent_tenant_id.

    Relationships are plain foreign-key ids; resolve them through the
    repository instead of navigating object graphs.
    """
    __tablename__ = "tenant"

    id = Column(Integer, primary_key=True, autoincrement=True)
    parent_tenant_id = Column(Integer, ForeignKey("tenant.id", ondelete="RESTRICT"), nullable=True)
    tenant_type = Column(Text, nullable=False, default="Organization")
    name = Column(Text, nullable=False)
    slug = Column(Text, nullable=False, unique=True)
    settings_json = Column(PortableJSONB, nullable=False, default=dict)
    retention_policies_json = Column(PortableJSONB, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)

    @validates('slug')
    def validate_slug(self, key, value):
        """Slugs are lowercase letters, digits and hyphens, 2-100 characters."""
        if not re.match(r'^[a-z0-9-]+$', value):
            raise ValueError(
                "Slug must contain only lowercase letters, numbers, and hyphens"
            )
        if len(value) < 2 or len(value) > 100:
            raise ValueError("Slug must be between 2 and 100 characters")
        return value

    def __repr__(self):
        return f"<Tenant(id={self.id}, slug='{self.slug}', active={self.is_active})>"
