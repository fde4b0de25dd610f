"""markdown_text.py — plain-text helpers for turning lesson bodies into handout text.

Widths here are estimates (average glyph width of half the font size), not
font metrics.
"""

from __future__ import annotations

import html
import re

_MARKDOWN_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"#{1,6}\s+"), ""),  # headers
    (re.compile(r"\*\*(.+?)\*\*"), r"\1"),  # bold
    (re.compile(r"\*(.+?)\*"), r"\1"),  # italic
    (re.compile(r"__(.+?)__"), r"\1"),
    (re.compile(r"_(.+?)_"), r"\1"),
    (re.compile(r"`(.+?)`"), r"\1"),  # inline code
    (re.compile(r"\[(.+?)\]\(.+?\)"), r"\1"),  # links
    (re.compile(r"^\s*[-*+]\s+", re.M), "• "),  # bullets
    (re.compile(r"^\s*\d+\.\s+", re.M), ""),  # numbered lists
    (re.compile(r">\s+"), ""),  # blockquotes
)

_BLOCK_TAG_RE = re.compile(r"</(?:p|div|h[1-6]|li|ul|ol|blockquote)>|<br\s*/?>", re.I)
_TAG_RE = re.compile(r"<[^>]+>")


def strip_markdown(text: str) -> str:
    for pattern, repl in _MARKDOWN_RULES:
        text = pattern.sub(repl, text)
    return text.strip()


def html_to_text(text: str) -> str:
    """Drop tags, keeping block boundaries as blank lines."""
    text = _BLOCK_TAG_RE.sub("\n\n", text)
    text = _TAG_RE.sub("", text)
    return html.unescape(text).strip()


def wrap_text(text: str, max_width: float, font_size: float) -> list[str]:
    chars_per_line = int(max_width // (font_size * 0.5))

    lines: list[str] = []
    current = ""
    for word in text.split():
        candidate = f"{current} {word}" if current else word
        if len(candidate) <= chars_per_line:
            current = candidate
        else:
            if current:
                lines.append(current)
            current = word
    if current:
        lines.append(current)
    return lines


def extract_key_points(content: str, content_type: str = "markdown", limit: int = 5) -> list[str]:
    """First `limit` paragraphs longer than 20 and shorter than 500 characters."""
    plain = html_to_text(content) if content_type == "html" else content
    stripped = strip_markdown(plain)
    paragraphs = [p.replace("\n", " ").strip() for p in re.split(r"\n\n+", stripped)]
    return [p for p in paragraphs if 20 < len(p) < 500][:limit]
