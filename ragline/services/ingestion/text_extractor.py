"""Turn uploaded file bytes into plain text.

Format dispatch by content-type label:

    pdf    PyMuPDF (``fitz``), page by page
    docx   python-docx paragraphs
    html   BeautifulSoup, scripts and styles dropped
    csv    one line per row, cells joined by ", "
    json   re-serialized with indentation
    txt / md  UTF-8 decode

The label is derived once at upload time by :func:`detect_content_type`
and stored on the Document row, so reprocessing never has to re-sniff.
"""

from __future__ import annotations

import csv
import io
import json
from pathlib import PurePath
from typing import Any

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog
from bs4 import BeautifulSoup
from docx import Document as DocxDocument

from ragline.utils.errors import ProcessingError

logger = structlog.get_logger(logger_name=__name__)

UNKNOWN_CONTENT_TYPE = "unknown"

_MIME_TYPES: dict[str, str] = {
    "application/pdf": "pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "text/plain": "txt",
    "text/html": "html",
    "text/markdown": "md",
    "text/x-markdown": "md",
    "text/csv": "csv",
    "application/json": "json",
}

_EXTENSIONS: dict[str, str] = {
    ".pdf": "pdf",
    ".docx": "docx",
    ".txt": "txt",
    ".text": "txt",
    ".html": "html",
    ".htm": "html",
    ".md": "md",
    ".markdown": "md",
    ".csv": "csv",
    ".json": "json",
}


def detect_content_type(filename: str, mime_type: str | None = None) -> str:
    """Derive the content-type label from the MIME type, else the extension."""
    if mime_type:
        label = _MIME_TYPES.get(mime_type.split(";", 1)[0].strip().lower())
        if label:
            return label
    return _EXTENSIONS.get(PurePath(filename).suffix.lower(), UNKNOWN_CONTENT_TYPE)


class TextExtractor:
    """Extract text (and a little metadata) from file bytes.

    Methods are synchronous; the ingestion pipeline runs them in a worker
    thread.
    """

    def extract(self, data: bytes, content_type: str) -> str:
        """Return the plain text of *data*.

        Raises
        ------
        ProcessingError
            If the bytes cannot be parsed as *content_type*.
        """
        handlers = {
            "pdf": self._extract_pdf,
            "docx": self._extract_docx,
            "html": self._extract_html,
            "csv": self._extract_csv,
            "json": self._extract_json,
        }
        handler = handlers.get(content_type, self._extract_plain)
        try:
            text = handler(data)
        except ProcessingError:
            raise
        except Exception as exc:
            raise ProcessingError(
                message=f"Failed to extract {content_type} text: {exc}",
                provider_name="text_extractor",
            ) from exc
        logger.debug("text_extracted", content_type=content_type, chars=len(text))
        return text

    def extract_metadata(self, data: bytes, content_type: str, text: str) -> dict[str, Any]:
        """Return ``wordCount`` plus PDF page count, title and author when known."""
        metadata: dict[str, Any] = {"wordCount": len(text.split())}
        if content_type == "pdf":
            with fitz.open(stream=data, filetype="pdf") as doc:
                metadata["pageCount"] = doc.page_count
                info = doc.metadata or {}
                if info.get("title"):
                    metadata["title"] = info["title"]
                if info.get("author"):
                    metadata["author"] = info["author"]
        return metadata

    # ------------------------------------------------------------------
    # Format handlers
    # ------------------------------------------------------------------

    @staticmethod
    def _extract_pdf(data: bytes) -> str:
        with fitz.open(stream=data, filetype="pdf") as doc:
            pages = [page.get_text() for page in doc]
        return "\n\n".join(p.strip() for p in pages if p.strip())

    @staticmethod
    def _extract_docx(data: bytes) -> str:
        doc = DocxDocument(io.BytesIO(data))
        return "\n\n".join(para.text for para in doc.paragraphs if para.text.strip())

    @staticmethod
    def _extract_html(data: bytes) -> str:
        soup = BeautifulSoup(data, "html.parser")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        lines = (line.strip() for line in soup.get_text("\n").splitlines())
        return "\n".join(line for line in lines if line)

    @staticmethod
    def _extract_csv(data: bytes) -> str:
        reader = csv.reader(io.StringIO(_decode(data)))
        return "\n".join(", ".join(cell.strip() for cell in row) for row in reader if row)

    @staticmethod
    def _extract_json(data: bytes) -> str:
        return json.dumps(json.loads(_decode(data)), indent=2, ensure_ascii=False)

    @staticmethod
    def _extract_plain(data: bytes) -> str:
        if b"\x00" in data[:1024]:
            raise ProcessingError(
                message="Unsupported binary content",
                provider_name="text_extractor",
            )
        return _decode(data)


def _decode(data: bytes) -> str:
    # utf-8-sig drops a leading BOM.
    return data.decode("utf-8-sig", errors="replace")
