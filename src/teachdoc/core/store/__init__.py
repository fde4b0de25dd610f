"""Generated-document storage package.

Public API:
- `DocumentStore(db_path, storage_dir)` with `ensure_schema`, `save_batch`,
  `get`, `list_for_lesson`, `list_for_course`, `read_bytes`, `delete`

    from teachdoc.core.store import DocumentStore
"""

from __future__ import annotations

from .document_store import DocumentStore, GeneratedDocument, PendingDocument, md5_hex

__all__ = [
    "DocumentStore",
    "GeneratedDocument",
    "PendingDocument",
    "md5_hex",
]
