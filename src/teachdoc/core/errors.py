"""errors.py — exception types raised by the compilers, builders and store."""

from __future__ import annotations


class TeachdocError(Exception):
    """Base class for every error the library raises on purpose."""


class SpecValidationError(TeachdocError, ValueError):
    def __init__(self, schema: str, errors: list[str]) -> None:
        self.schema = schema
        self.errors = list(errors)
        head = "; ".join(self.errors[:5])
        more = f" (+{len(self.errors) - 5} more)" if len(self.errors) > 5 else ""
        super().__init__(f"{schema} spec is invalid: {head}{more}")


class UnsupportedImageFormatError(TeachdocError, ValueError):
    """Image bytes carry neither a PNG nor a JPEG signature."""


class TemplateError(TeachdocError, RuntimeError):
    """The PPTX template is missing or has nothing to map slides onto."""


class DocumentGenerationError(TeachdocError, RuntimeError):
    def __init__(self, document_type: str, message: str) -> None:
        self.document_type = document_type
        self.message = message
        super().__init__(f"failed to generate {document_type}: {message}")


class PersistenceError(TeachdocError, RuntimeError):
    pass
