"""Content addressing: SHA-256 fingerprints over streams and object keys.

Hashes are computed over content bytes only (never file name or MIME type),
lowercase hex, and always by reading the stream in fixed-size chunks so large
files are never held in memory as a whole.
"""

import hashlib
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Optional

from models.base import utcnow

from .validation import sanitize_filename

CHUNK_SIZE = 8192  # 8KB chunks
DEFAULT_SPOOL_MAX_MEMORY = 8 * 1024 * 1024
HASH_ALGORITHM = "sha256"


class HashingReader:
    """File-like wrapper that digests every byte read through it.

    Hand it to anything that consumes a readable stream (an upload, a copy)
    and the hash is ready when the consumer has drained it.
    """

    def __init__(self, stream: BinaryIO):
        self._stream = stream
        self._digest = hashlib.new(HASH_ALGORITHM)
        self.bytes_read = 0

    def read(self, size: int = -1) -> bytes:
        chunk = self._stream.read(size)
        if chunk:
            self._digest.update(chunk)
            self.bytes_read += len(chunk)
        return chunk

    def readable(self) -> bool:
        return True

    def hexdigest(self) -> str:
        return self._digest.hexdigest()


@dataclass
class SpooledContent:
    """Caller content copied once into a local spool, with its fingerprint.

    Attributes:
        stream: Spool rewound to position 0, ready for upload
        content_hash: Lowercase hex SHA-256 of the content
        size_bytes: Number of bytes read from the caller stream
    """
    stream: BinaryIO
    content_hash: str
    size_bytes: int

    def close(self) -> None:
        self.stream.close()


def spool_and_hash(
    stream: BinaryIO,
    max_memory_bytes: int = DEFAULT_SPOOL_MAX_MEMORY,
    chunk_size: int = CHUNK_SIZE,
) -> SpooledContent:
    """Copy stream into a spooled temp file while hashing it.

    The caller's stream is read exactly once. Up to max_memory_bytes stay in
    memory; anything larger rolls over to a temporary file on disk.
    """
    spool = tempfile.SpooledTemporaryFile(max_size=max_memory_bytes, mode="w+b")
    reader = HashingReader(stream)
    try:
        while True:
            chunk = reader.read(chunk_size)
            if not chunk:
                break
            spool.write(chunk)
        spool.seek(0)
    except BaseException:
        spool.close()
        raise

    return SpooledContent(
        stream=spool,
        content_hash=reader.hexdigest(),
        size_bytes=reader.bytes_read,
    )


def build_blob_path(
    tenant_id: int,
    document_type_id: int,
    content_hash: str,
    file_name: str,
    when: Optional[datetime] = None,
) -> str:
    """Object key in format: {tenant_id}/{type_id}/{yyyy}/{mm}/{dd}/{sha256}{ext}

    Example:
        >>> build_blob_path(1, 2, 'abc123', 'invoice.PDF', datetime(2026, 3, 9))
        '1/2/2026/03/09/abc123.pdf'
    """
    when = when or utcnow()
    ext = Path(sanitize_filename(file_name)).suffix.lower()
    return f"{tenant_id}/{document_type_id}/{when.year}/{when.month:02d}/{when.day:02d}/{content_hash}{ext}"
