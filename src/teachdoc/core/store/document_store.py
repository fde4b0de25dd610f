"""document_store.py — generated document records (SQLite) plus their files on disk.

Records are create/read/delete only. A batch of documents is persisted as
one unit: every file is written, then every row is inserted in a single
transaction; if anything fails the written files are removed again.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import sqlite3
import uuid
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from teachdoc.core.errors import PersistenceError
from teachdoc.core.types import DOCUMENT_TYPES, GenerationResult

logger = logging.getLogger(__name__)

_SEGMENT_RE = re.compile(r"[^A-Za-z0-9._-]")

_COLUMNS = (
    "id",
    "course_id",
    "unit_id",
    "lesson_id",
    "document_type",
    "template_id",
    "filename",
    "storage_path",
    "file_size",
    "checksum",
    "metadata",
    "generated_at",
    "generated_by",
)


def md5_hex(data: bytes) -> str:
    # integrity check only
    return hashlib.md5(data).hexdigest()


def _safe_segment(value: str) -> str:
    seg = _SEGMENT_RE.sub("-", value)
    if seg in ("", ".", ".."):
        raise PersistenceError(f"unusable storage path segment: {value!r}")
    return seg


def storage_timestamp(moment: datetime) -> str:
    return moment.isoformat().replace(":", "-").replace(".", "-")


@dataclass
class GeneratedDocument:
    id: str
    course_id: str
    document_type: str
    filename: str
    storage_path: str
    file_size: int
    checksum: str
    generated_at: str
    unit_id: str | None = None
    lesson_id: str | None = None
    template_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    generated_by: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "GeneratedDocument":
        d = dict(row)
        d["metadata"] = json.loads(d.get("metadata") or "{}")
        return cls(**d)


@dataclass
class PendingDocument:
    """A compiled document waiting to be persisted."""

    course_id: str
    document_type: str
    result: GenerationResult
    unit_id: str | None = None
    lesson_id: str | None = None
    template_id: str | None = None
    generated_by: str | None = None


class DocumentStore:
    def __init__(self, db_path: str | Path, storage_dir: str | Path):
        self.db_path = str(db_path)
        self.storage_dir = Path(storage_dir)
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def ensure_schema(self) -> None:
        types = ", ".join(f"'{t}'" for t in DOCUMENT_TYPES)
        with self._session() as conn:
            conn.executescript(
                f"""
                CREATE TABLE IF NOT EXISTS generated_documents (
                    id TEXT PRIMARY KEY,
                    course_id TEXT NOT NULL,
                    unit_id TEXT,
                    lesson_id TEXT,
                    document_type TEXT NOT NULL CHECK (document_type IN ({types})),
                    template_id TEXT,
                    filename TEXT NOT NULL,
                    storage_path TEXT NOT NULL,
                    file_size INTEGER NOT NULL,
                    checksum TEXT NOT NULL,
                    metadata TEXT NOT NULL DEFAULT '{{}}',
                    generated_at TEXT NOT NULL,
                    generated_by TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_generated_documents_course ON generated_documents(course_id);
                CREATE INDEX IF NOT EXISTS idx_generated_documents_lesson ON generated_documents(lesson_id);
                CREATE INDEX IF NOT EXISTS idx_generated_documents_type ON generated_documents(document_type);
                """
            )

    def storage_path_for(
        self, course_id: str, lesson_id: str | None, document_type: str, ext: str, generated_at: datetime
    ) -> str:
        """`<courseId>/<lessonId>/<type>-<timestamp>.<ext>`, relative to the storage dir."""
        parts = [_safe_segment(course_id), _safe_segment(lesson_id or "course")]
        parts.append(f"{_safe_segment(document_type)}-{storage_timestamp(generated_at)}.{ext}")
        return "/".join(parts)

    def absolute_path(self, doc: GeneratedDocument) -> Path:
        return self.storage_dir / doc.storage_path

    def save_batch(self, pending: list[PendingDocument], *, now: datetime | None = None) -> list[GeneratedDocument]:
        generated_at = now or datetime.now(timezone.utc)
        records: list[GeneratedDocument] = []
        written: list[Path] = []
        try:
            for p in pending:
                ext = Path(p.result.filename).suffix.lstrip(".") or "bin"
                rel = self.storage_path_for(p.course_id, p.lesson_id, p.document_type, ext, generated_at)
                path = self.storage_dir / rel
                path.parent.mkdir(parents=True, exist_ok=True)
                # "xb": never overwrite an existing generated file
                with open(path, "xb") as f:
                    f.write(p.result.buffer)
                written.append(path)

                records.append(
                    GeneratedDocument(
                        id=str(uuid.uuid4()),
                        course_id=p.course_id,
                        unit_id=p.unit_id,
                        lesson_id=p.lesson_id,
                        document_type=p.document_type,
                        template_id=p.template_id,
                        filename=p.result.filename,
                        storage_path=rel,
                        file_size=len(p.result.buffer),
                        checksum=md5_hex(p.result.buffer),
                        metadata=dict(p.result.metadata),
                        generated_at=generated_at.isoformat(),
                        generated_by=p.generated_by,
                    )
                )

            with self._session() as conn:
                conn.executemany(
                    f"INSERT INTO generated_documents ({', '.join(_COLUMNS)}) VALUES ({', '.join('?' * len(_COLUMNS))})",
                    [self._row_values(r) for r in records],
                )
        except (OSError, sqlite3.Error, PersistenceError) as e:
            for path in written:
                path.unlink(missing_ok=True)
            logger.error("persisting %d document(s) failed: %s", len(pending), e)
            if isinstance(e, PersistenceError):
                raise
            raise PersistenceError(f"failed to persist generated documents: {e}") from e

        logger.info("persisted %d document(s) under %s", len(records), self.storage_dir)
        return records

    @staticmethod
    def _row_values(r: GeneratedDocument) -> tuple[Any, ...]:
        d = r.to_dict()
        d["metadata"] = json.dumps(r.metadata, ensure_ascii=False, sort_keys=True)
        return tuple(d[c] for c in _COLUMNS)

    def get(self, document_id: str) -> GeneratedDocument | None:
        with self._session() as conn:
            row = conn.execute("SELECT * FROM generated_documents WHERE id = ?", (document_id,)).fetchone()
        return GeneratedDocument.from_row(row) if row is not None else None

    def list_for_lesson(self, lesson_id: str) -> list[GeneratedDocument]:
        with self._session() as conn:
            rows = conn.execute(
                "SELECT * FROM generated_documents WHERE lesson_id = ? ORDER BY generated_at DESC, rowid DESC",
                (lesson_id,),
            ).fetchall()
        return [GeneratedDocument.from_row(r) for r in rows]

    def list_for_course(self, course_id: str, document_type: str | None = None) -> list[GeneratedDocument]:
        sql = "SELECT * FROM generated_documents WHERE course_id = ?"
        params: list[Any] = [course_id]
        if document_type:
            sql += " AND document_type = ?"
            params.append(document_type)
        sql += " ORDER BY generated_at DESC, rowid DESC"
        with self._session() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [GeneratedDocument.from_row(r) for r in rows]

    def read_bytes(self, document_id: str) -> tuple[GeneratedDocument, bytes]:
        doc = self.get(document_id)
        if doc is None:
            raise PersistenceError(f"document not found: {document_id}")
        path = self.absolute_path(doc)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise PersistenceError(f"file for document {document_id} is missing: {path}") from e
        if md5_hex(data) != doc.checksum:
            raise PersistenceError(f"checksum mismatch for document {document_id}")
        return doc, data

    def delete(self, document_id: str) -> bool:
        doc = self.get(document_id)
        if doc is None:
            return False
        try:
            with self._session() as conn:
                conn.execute("DELETE FROM generated_documents WHERE id = ?", (document_id,))
        except sqlite3.Error as e:
            raise PersistenceError(f"failed to delete document {document_id}: {e}") from e
        # row first: a stored record must never point at a missing file
        path = self.absolute_path(doc)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("document %s deleted but its file could not be removed: %s (%s)", document_id, path, e)
        logger.info("deleted document %s (%s)", document_id, doc.storage_path)
        return True
