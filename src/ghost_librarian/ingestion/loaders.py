"""Document loaders for ingestion."""

from __future__ import annotations

from pathlib import Path

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from ghost_librarian.errors import IngestError
from ghost_librarian.models import LoadedDocument

TEXT_SUFFIXES = {".md", ".markdown", ".txt", ".text", ".rst"}
PDF_SUFFIXES = {".pdf"}
SUPPORTED_SUFFIXES = TEXT_SUFFIXES | PDF_SUFFIXES


def load_document(path: Path) -> LoadedDocument:
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        supported = ", ".join(sorted(SUPPORTED_SUFFIXES))
        raise IngestError(f"Unsupported file format: {suffix or path.name} (supported: {supported})")
    if not path.is_file():
        raise IngestError(f"File not found: {path}")

    if suffix in PDF_SUFFIXES:
        text, pages_total = _load_pdf(path)
        return LoadedDocument(
            source_path=str(path),
            source_type="pdf",
            filename=path.name,
            text=text,
            pages_total=pages_total,
        )
    return LoadedDocument(
        source_path=str(path),
        source_type="markdown" if suffix in {".md", ".markdown"} else "text",
        filename=path.name,
        text=_load_text(path),
    )


def _load_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="ignore")
    except OSError as exc:
        raise IngestError(f"Failed to read text file {path}: {exc}") from exc


def _load_pdf(path: Path) -> tuple[str, int]:
    try:
        reader = PdfReader(str(path))
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PdfReadError, OSError, ValueError) as exc:
        raise IngestError(
            f"Failed to extract text from PDF {path} (scanned PDFs are not supported): {exc}"
        ) from exc
    return "\n\n".join(page for page in pages if page.strip()), len(pages)
