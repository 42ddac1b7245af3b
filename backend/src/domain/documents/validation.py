"""Input validation for lifecycle operations

Every check here runs before the blob store or the metadata store is touched.
The validate_* functions return (is_valid, error_message); the ensure_*
wrappers raise ValidationError for use inside the lifecycle manager.
"""

import os
import re
from typing import Any, Optional, Tuple

from .errors import ValidationError


# File size limit (default 100MB, configurable via env)
MAX_FILE_SIZE = int(os.getenv('MAX_UPLOAD_SIZE_BYTES', 100 * 1024 * 1024))

MAX_TITLE_LENGTH = 500
MAX_FILENAME_LENGTH = 255
MAX_REASON_LENGTH = 500
MAX_ACTOR_LENGTH = 255


def validate_title(title: Optional[str]) -> Tuple[bool, Optional[str]]:
    """Validate a document title

    Example:
        >>> validate_title('Invoice-001')
        (True, None)
        >>> validate_title('   ')
        (False, 'Title cannot be empty')
    """
    if title is None:
        return False, "Title cannot be empty"

    if not isinstance(title, str):
        return False, f"Title must be a string (got {type(title).__name__})"

    if not title.strip():
        return False, "Title cannot be empty"

    if len(title) > MAX_TITLE_LENGTH:
        return False, f"Title exceeds {MAX_TITLE_LENGTH} characters (got {len(title)})"

    return True, None


def validate_file_size(size_bytes: int, max_size: Optional[int] = None) -> Tuple[bool, Optional[str]]:
    """Validate file size is within limits

    Example:
        >>> validate_file_size(1024)
        (True, None)
        >>> validate_file_size(0)
        (False, 'File is empty (0 bytes)')
    """
    if max_size is None:
        max_size = MAX_FILE_SIZE

    if size_bytes == 0:
        return False, "File is empty (0 bytes)"

    if size_bytes > max_size:
        return False, f"File exceeds maximum size of {max_size} bytes (got {size_bytes} bytes)"

    return True, None


def validate_filename(filename: Optional[str]) -> Tuple[bool, Optional[str]]:
    """Validate an uploaded file name

    Validation rules:
    - Not empty
    - Max 255 characters
    - No path traversal (../, ..\\)
    - No null bytes or control characters

    Example:
        >>> validate_filename('invoice.pdf')
        (True, None)
        >>> validate_filename('../../etc/passwd')
        (False, 'Filename contains path traversal or directory separators')
    """
    if filename is not None and not isinstance(filename, str):
        return False, f"Filename must be a string (got {type(filename).__name__})"

    if not filename or len(filename.strip()) == 0:
        return False, "Filename cannot be empty"

    if len(filename) > MAX_FILENAME_LENGTH:
        return False, f"Filename exceeds {MAX_FILENAME_LENGTH} characters (got {len(filename)})"

    if '..' in filename or '/' in filename or '\\' in filename:
        return False, "Filename contains path traversal or directory separators"

    if '\x00' in filename:
        return False, "Filename contains null bytes"

    if any(ord(c) < 32 for c in filename):
        return False, "Filename contains control characters"

    return True, None


def validate_identifier(value: Any) -> Tuple[bool, Optional[str]]:
    """Ids are positive integers (bool is rejected even though it subclasses int)"""
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"Identifier must be an integer (got {type(value).__name__})"

    if value <= 0:
        return False, f"Identifier must be positive (got {value})"

    return True, None


def validate_actor(actor: Optional[str]) -> Tuple[bool, Optional[str]]:
    """Actor is optional, but when given it must be a non-blank identity string"""
    if actor is None:
        return True, None

    if not isinstance(actor, str) or not actor.strip():
        return False, "Actor cannot be blank"

    if len(actor) > MAX_ACTOR_LENGTH:
        return False, f"Actor exceeds {MAX_ACTOR_LENGTH} characters (got {len(actor)})"

    return True, None


def sanitize_filename(filename: str) -> str:
    """Sanitize filename for use in an object key

    Example:
        >>> sanitize_filename('../../order.pdf')
        'order.pdf'
        >>> sanitize_filename('order (copy).pdf')
        'order_copy_.pdf'
    """
    filename = os.path.basename(filename)
    filename = re.sub(r'[^\w\s.-]', '_', filename)
    filename = re.sub(r'[\s_]+', '_', filename)

    if len(filename) > MAX_FILENAME_LENGTH:
        name, ext = os.path.splitext(filename)
        filename = name[:MAX_FILENAME_LENGTH - len(ext)] + ext

    return filename


def _raise_if_invalid(result: Tuple[bool, Optional[str]], field: str) -> None:
    is_valid, error = result
    if not is_valid:
        raise ValidationError(error, details={"field": field})


def ensure_title(title: Optional[str]) -> None:
    _raise_if_invalid(validate_title(title), "title")


def ensure_filename(filename: Optional[str]) -> None:
    _raise_if_invalid(validate_filename(filename), "file_name")


def ensure_identifier(value: Any, field: str) -> None:
    _raise_if_invalid(validate_identifier(value), field)


def ensure_actor(actor: Optional[str]) -> None:
    _raise_if_invalid(validate_actor(actor), "actor")


def ensure_file_size(size_bytes: int, max_size: Optional[int] = None) -> None:
    _raise_if_invalid(validate_file_size(size_bytes, max_size), "content_stream")


def ensure_mime_type(mime_type: Optional[str]) -> None:
    if not isinstance(mime_type, str) or '/' not in mime_type:
        raise ValidationError(
            f"Invalid MIME type: {mime_type!r}",
            details={"field": "mime_type"},
        )


def ensure_reason(reason: Optional[str]) -> None:
    if reason is not None and not isinstance(reason, str):
        raise ValidationError(
            f"Deletion reason must be a string (got {type(reason).__name__})",
            details={"field": "reason"},
        )
    if reason is not None and len(reason) > MAX_REASON_LENGTH:
        raise ValidationError(
            f"Deletion reason exceeds {MAX_REASON_LENGTH} characters (got {len(reason)})",
            details={"field": "reason"},
        )
