"""schema_validate.py — JSON Schema validation for document specs.

Specs are plain dicts checked against the Draft 2020-12 schemas shipped in
``teachdoc/core/schemas``. PDF image elements carry raw ``bytes``, which JSON
Schema has no type for, so the validator is extended with a ``bytes`` type.

Can also be run standalone:

    python -m teachdoc.core.validate.schema_validate --schema pdf_spec --instance spec.json
"""

from __future__ import annotations

import argparse
import json
from functools import lru_cache
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.validators import extend

from teachdoc.core.errors import SpecValidationError


def _is_bytes(_checker: Any, instance: Any) -> bool:
    return isinstance(instance, (bytes, bytearray, memoryview))


SpecValidator = extend(
    Draft202012Validator,
    type_checker=Draft202012Validator.TYPE_CHECKER.redefine("bytes", _is_bytes),
)


def schema_dir() -> Path:
    # .../src/teachdoc/core/validate/schema_validate.py -> .../src/teachdoc/core/schemas
    return Path(__file__).resolve().parents[1] / "schemas"


def schema_path(name: str) -> Path:
    p = Path(name)
    if p.suffix == ".json":
        return p
    return schema_dir() / f"{name}.schema.json"


def load_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


@lru_cache(maxsize=None)
def load_schema(name: str) -> dict:
    path = schema_path(name)
    if not path.exists():
        raise FileNotFoundError(f"schema not found: {path}")
    return load_json(path)


@lru_cache(maxsize=None)
def _validator(name: str) -> Any:
    return SpecValidator(load_schema(name))


def _format_path(error: Any) -> str:
    path = "$"
    for p in error.absolute_path:
        path += f"[{p!r}]" if isinstance(p, str) else f"[{p}]"
    return path


def iter_spec_errors(name: str, instance: Any) -> list[str]:
    """Validate `instance` against schema `name`; return `$[...]: message` strings."""
    v = _validator(name)
    errors = sorted(v.iter_errors(instance), key=lambda e: [str(p) for p in e.absolute_path])

    msgs: list[str] = []
    for e in errors:
        msg = e.message
        if e.context:
            # oneOf: report the branch that got furthest
            best = max(e.context, key=lambda c: len(c.absolute_path))
            msg = f"{msg} ({_format_path(best)}: {best.message})"
        msgs.append(f"{_format_path(e)}: {msg}")
    return msgs


def ensure_valid(name: str, instance: Any) -> None:
    errors = iter_spec_errors(name, instance)
    if errors:
        raise SpecValidationError(name, errors)


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--schema", required=True, help="schema name (e.g. pdf_spec) or path to *.schema.json")
    ap.add_argument("--instance", required=True, help="path to json to validate")
    args = ap.parse_args()

    instance_path = Path(args.instance)
    errors = iter_spec_errors(args.schema, load_json(instance_path))

    if not errors:
        print(f"[OK] {instance_path} conforms to {args.schema}")
        return 0

    print(f"[NG] {instance_path} does NOT conform to {args.schema}")
    for i, m in enumerate(errors, 1):
        print(f"  {i}. {m}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
