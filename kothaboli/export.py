"""Export formatters: Story in, file bytes out."""

from __future__ import annotations

import re
from dataclasses import dataclass
from html import escape
from typing import Callable

from .models import Story

STYLESHEET = (
    "body { font-family: 'Noto Serif Bengali', 'SolaimanLipi', serif; "
    "max-width: 42em; margin: 3em auto; line-height: 1.8; color: #1e293b; }\n"
    "h1 { text-align: center; margin-bottom: 0.2em; }\n"
    ".author { text-align: center; color: #64748b; margin-bottom: 2em; }\n"
    "p { margin: 0 0 1em; text-align: justify; }\n"
)
PRINT_STYLESHEET = "@page { margin: 2cm; }\n@media print { body { margin: 0; } }\n"

WORD_NAMESPACES = (
    "xmlns:o='urn:schemas-microsoft-com:office:office' "
    "xmlns:w='urn:schemas-microsoft-com:office:word' "
    "xmlns='http://www.w3.org/TR/REC-html40'"
)


@dataclass(frozen=True)
class ExportFormat:
    render: Callable[[Story], bytes]
    extension: str
    media_type: str


def to_text(story: Story) -> bytes:
    return f"{story.title}\n{story.author}\n\n{story.content}".encode("utf-8")


def body_html(story: Story) -> str:
    paragraphs = [
        f"<p>{escape(line.strip())}</p>"
        for line in story.content.split("\n")
        if line.strip()
    ]
    parts = [f"<h1>{escape(story.title)}</h1>"]
    if story.author:
        parts.append(f"<div class=\"author\">{escape(story.author)}</div>")
    parts.extend(paragraphs)
    return "\n".join(parts)


def to_html(story: Story) -> bytes:
    document = (
        "<!DOCTYPE html>\n"
        "<html lang=\"bn\">\n<head>\n<meta charset=\"utf-8\">\n"
        f"<title>{escape(story.title)}</title>\n"
        f"<style>\n{STYLESHEET}</style>\n"
        "</head>\n<body>\n"
        f"{body_html(story)}\n"
        "</body>\n</html>\n"
    )
    return document.encode("utf-8")


def to_word(story: Story) -> bytes:
    document = (
        f"<html {WORD_NAMESPACES}>\n<head>\n<meta charset=\"utf-8\">\n"
        f"<title>{escape(story.title)}</title>\n"
        "<!--[if gte mso 9]><xml><w:WordDocument><w:View>Print</w:View>"
        "</w:WordDocument></xml><![endif]-->\n"
        f"<style>\n{STYLESHEET}</style>\n"
        "</head>\n<body>\n"
        f"{body_html(story)}\n"
        "</body>\n</html>\n"
    )
    return document.encode("utf-8")


def to_print_html(story: Story) -> bytes:
    """HTML that opens the host's print dialog, where it can be saved as PDF."""
    document = (
        "<!DOCTYPE html>\n"
        "<html lang=\"bn\">\n<head>\n<meta charset=\"utf-8\">\n"
        f"<title>{escape(story.title)}</title>\n"
        f"<style>\n{STYLESHEET}{PRINT_STYLESHEET}</style>\n"
        "</head>\n<body onload=\"window.print()\">\n"
        f"{body_html(story)}\n"
        "</body>\n</html>\n"
    )
    return document.encode("utf-8")


EXPORT_FORMATS: dict[str, ExportFormat] = {
    "txt": ExportFormat(to_text, ".txt", "text/plain; charset=utf-8"),
    "html": ExportFormat(to_html, ".html", "text/html; charset=utf-8"),
    "doc": ExportFormat(to_word, ".doc", "application/msword"),
    "pdf": ExportFormat(to_print_html, ".print.html", "text/html; charset=utf-8"),
}

_UNSAFE_FILENAME = re.compile(r"[\\/:*?\"<>|\x00-\x1f]+")


def export_filename(story: Story, fmt: str) -> str:
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unknown export format {fmt!r}")
    stem = _UNSAFE_FILENAME.sub("", story.title).strip().replace(" ", "_")
    return f"{stem or 'untitled'}{EXPORT_FORMATS[fmt].extension}"


def export_story(story: Story, fmt: str) -> bytes:
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unknown export format {fmt!r}")
    return EXPORT_FORMATS[fmt].render(story)
