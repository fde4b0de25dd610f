from __future__ import annotations

import re
import zipfile
from io import BytesIO

# Earliest timestamp a zip entry can carry; used for every member so that the
# same document always packs to the same bytes.
ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)

_SLUG_RE = re.compile(r"[^a-zA-Z0-9\-_]")
# decks keep only letters and digits
_DECK_SLUG_RE = re.compile(r"[^a-zA-Z0-9]")


def slugify_filename(title: str | None, ext: str, fallback: str = "document", *, strict: bool = False) -> str:
    base = title if title else fallback
    pattern = _DECK_SLUG_RE if strict else _SLUG_RE
    return f"{pattern.sub('-', base).lower()}.{ext}"


def read_zip_parts(data: bytes) -> dict[str, bytes]:
    """Read every member of an OOXML package, keeping archive order."""
    parts: dict[str, bytes] = {}
    with zipfile.ZipFile(BytesIO(data), "r") as zf:
        for name in zf.namelist():
            parts[name] = zf.read(name)
    return parts


def write_zip_parts(parts: dict[str, bytes]) -> bytes:
    """Pack parts with fixed timestamps. [Content_Types].xml goes first."""
    out = BytesIO()
    names = list(parts)
    if "[Content_Types].xml" in parts:
        names.remove("[Content_Types].xml")
        names.insert(0, "[Content_Types].xml")
    with zipfile.ZipFile(out, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name in names:
            info = zipfile.ZipInfo(name, date_time=ZIP_EPOCH)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o600 << 16
            zf.writestr(info, parts[name])
    return out.getvalue()


def normalize_zip(data: bytes) -> bytes:
    return write_zip_parts(read_zip_parts(data))
