"""Pydantic schemas for lifecycle inputs and reports."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class DocumentMetadataUpdate(BaseModel):
    """Partial update of a document's presentation fields.

    Only fields that are set are applied; None leaves a field unchanged.
    """

    title: Optional[str] = Field(default=None, max_length=500)
    description: Optional[str] = Field(default=None, max_length=2000)
    metadata: Optional[Dict[str, Any]] = None
    tags: Optional[List[str]] = None

    @field_validator('title')
    @classmethod
    def title_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Title cannot be blank")
        return v

    @field_validator('tags')
    @classmethod
    def strip_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        return [tag.strip() for tag in v if tag and tag.strip()]


class IndexStats(BaseModel):
    """Search indexing coverage over current, non-deleted documents."""

    total_documents: int = Field(ge=0)
    indexed_documents: int = Field(ge=0)
    documents_needing_indexing: int = Field(ge=0)
    retrieved_at: datetime
