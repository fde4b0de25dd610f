"""Document generation package.

- `generate_documents(store, bundle, document_types, config)` compiles then persists
- `compile_documents(bundle, document_types, config)` compiles only

Keep this module as a thin re-export layer:

    from teachdoc.core.generate import generate_documents
"""

from __future__ import annotations

from .orchestrate import compile_documents, content_type_for, generate_documents, summarize

__all__ = [
    "compile_documents",
    "content_type_for",
    "generate_documents",
    "summarize",
]
