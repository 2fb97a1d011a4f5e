"""Text extraction for indexable files.

Plain-text formats are read directly, DOCX goes through python-docx and
PDFs through pypdf. The remaining zip-based office formats are read
through their XML parts with tags stripped. Anything else is an
unsupported format.
"""

from __future__ import annotations

import re
import zipfile
from collections.abc import Callable
from pathlib import Path

import docx
from pypdf import PdfReader

from burrow.core.errors import IndexingError

PLAIN_TEXT_EXTENSIONS = frozenset(
    {
        "txt", "md", "rs", "ts", "tsx", "js", "py", "toml", "yaml", "yml", "json", "sh",
        "css", "html", "csv", "rtf",
    }
)  # fmt: skip

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


def strip_xml_tags(xml: str) -> str:
    """Drop markup and collapse whitespace: "<p>a</p><p>b</p>" -> "a b"."""
    return _WS_RE.sub(" ", _TAG_RE.sub(" ", xml)).strip()


def _read_plain(path: Path, max_chars: int) -> str:
    with path.open(encoding="utf-8", errors="replace") as f:
        return f.read(max_chars)


def _zip_parts(path: Path, names: list[str], max_chars: int) -> str:
    chunks: list[str] = []
    size = 0
    with zipfile.ZipFile(path) as archive:
        available = set(archive.namelist())
        for name in names:
            if name not in available:
                continue
            text = strip_xml_tags(archive.read(name).decode("utf-8", errors="replace"))
            if not text:
                continue
            chunks.append(text)
            size += len(text) + 1
            if size >= max_chars:
                break
    return "\n".join(chunks)


def _numbered_parts(path: Path, prefix: str) -> list[str]:
    """Members like ppt/slides/slide2.xml, in numeric order."""
    with zipfile.ZipFile(path) as archive:
        members = [n for n in archive.namelist() if n.startswith(prefix) and n.endswith(".xml")]

    def number(name: str) -> int:
        digits = re.sub(r"\D", "", name[len(prefix) :])
        return int(digits) if digits else 0

    return sorted(members, key=number)


def _read_docx(path: Path, max_chars: int) -> str:
    document = docx.Document(str(path))
    chunks: list[str] = []
    size = 0
    for paragraph in document.paragraphs:
        if not paragraph.text:
            continue
        chunks.append(paragraph.text)
        size += len(paragraph.text) + 1
        if size >= max_chars:
            break
    return "\n".join(chunks)


def _read_pdf(path: Path, max_chars: int) -> str:
    reader = PdfReader(path)
    chunks: list[str] = []
    size = 0
    for page in reader.pages:
        text = (page.extract_text() or "").strip()
        if not text:
            continue
        chunks.append(text)
        size += len(text) + 1
        if size >= max_chars:
            break
    return "\n".join(chunks)


def _read_pptx(path: Path, max_chars: int) -> str:
    return _zip_parts(path, _numbered_parts(path, "ppt/slides/slide"), max_chars)


def _read_xlsx(path: Path, max_chars: int) -> str:
    names = ["xl/sharedStrings.xml", *_numbered_parts(path, "xl/worksheets/sheet")]
    return _zip_parts(path, names, max_chars)


def _read_odf(path: Path, max_chars: int) -> str:
    return _zip_parts(path, ["content.xml"], max_chars)


_READERS: dict[str, Callable[[Path, int], str]] = {
    "pdf": _read_pdf,
    "docx": _read_docx,
    "pptx": _read_pptx,
    "xlsx": _read_xlsx,
    "odt": _read_odf,
    "odp": _read_odf,
    "ods": _read_odf,
    **{ext: _read_plain for ext in PLAIN_TEXT_EXTENSIONS},
}


def extract_text(path: Path, max_chars: int) -> str:
    """Extract at most max_chars characters of text from path.

    Any failure inside a reader (I/O, a corrupt or encrypted archive, a
    malformed PDF) is reported as an extraction failure for this file.

    Raises:
        IndexingError: Unsupported extension, unreadable or corrupt file,
            or a document with no text.
    """
    ext = path.suffix.lower().lstrip(".")
    reader = _READERS.get(ext)
    if reader is None:
        raise IndexingError.unsupported_format(str(path), ext or "<none>")

    try:
        text = reader(path, max_chars)
    except Exception as e:
        raise IndexingError.extraction_failed(str(path), str(e) or type(e).__name__) from e

    text = text[:max_chars]
    if not text.strip():
        raise IndexingError.extraction_failed(str(path), "no text content")
    return text
