"""slide_markdown.py — parse lesson slide markdown into SlideData dicts.

Slides are separated by `---` lines. Each slide may carry HTML-comment
annotations and a trailing speaker-notes block:

    <!-- type: quote -->
    <!-- layout: two-column -->
    ## Title
    - bullet
    Notes: said aloud, not shown
"""

from __future__ import annotations

import re
from typing import Any

from teachdoc.core.types import SLIDE_TYPES

SLIDE_SEPARATOR_RE = re.compile(r"\n---\s*\n")
TYPE_RE = re.compile(r"<!--\s*type:\s*([\w-]+)\s*-->")
LAYOUT_RE = re.compile(r"<!--\s*layout:\s*([\w-]+)\s*-->")
ANNOTATION_RE = re.compile(r"<!--\s*(?:type|layout|emphasis):\s*[\w-]+\s*-->")
NOTES_RE = re.compile(r"\n\s*Notes?:\s*(.*?)$", re.S | re.I)
HEADING_RE = re.compile(r"^#{2,3}\s+")
PLACEHOLDER_LINE_RE = re.compile(r"^\[(?:IMAGE|DIAGRAM):", re.I)


def parse_annotations(slide_markdown: str) -> dict[str, Any]:
    """Split one slide into type / layout / body / notes."""
    type_m = TYPE_RE.search(slide_markdown)
    layout_m = LAYOUT_RE.search(slide_markdown)
    notes_m = NOTES_RE.search(slide_markdown)

    body = ANNOTATION_RE.sub("", slide_markdown)
    body = NOTES_RE.sub("", body).strip()

    return {
        "type": type_m.group(1) if type_m else None,
        "layout": layout_m.group(1) if layout_m else "single",
        "content": body,
        "notes": notes_m.group(1).strip() if notes_m else None,
    }


def _content_lines(body: str, default_title: str) -> tuple[str, list[str]]:
    title = default_title
    content: list[str] = []
    for line in body.split("\n"):
        s = line.strip()
        if not s:
            continue
        if HEADING_RE.match(s):
            title = HEADING_RE.sub("", s)
        elif s.startswith("- ") or s.startswith("* "):
            content.append(s[2:])
        elif s.startswith("<!--") or s.startswith("<div") or PLACEHOLDER_LINE_RE.match(s):
            continue
        else:
            content.append(s)
    return title, content


def parse_slide_markdown(markdown: str, default_title: str) -> list[dict[str, Any]]:
    slides: list[dict[str, Any]] = []
    for part in SLIDE_SEPARATOR_RE.split(markdown):
        if not part.strip():
            continue
        ann = parse_annotations(part.strip())
        title, content = _content_lines(ann["content"], default_title)
        if not content and title == default_title and not ann["content"]:
            continue

        slide: dict[str, Any] = {"title": title, "content": content}
        if ann["content"]:
            slide["rawContent"] = ann["content"]
        if ann["notes"]:
            slide["notes"] = ann["notes"]
        if ann["type"]:
            slide["type"] = ann["type"] if ann["type"] in SLIDE_TYPES else "default"
        slides.append(slide)
    return slides
