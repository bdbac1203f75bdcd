from pathlib import Path

import pytest

from ghost_librarian.embeddings import Embedder
from ghost_librarian.errors import IngestError
from ghost_librarian.ingestion import ingest_file
from ghost_librarian.retrieval import FaissGateway, MemoryGateway


def _write_doc(tmp_path: Path) -> Path:
    path = tmp_path / "guide.md"
    path.write_text(
        "# Guide\nIntro text.\n\n## Install\nRun the installer.\n\n## Usage\nAsk a question.",
        encoding="utf-8",
    )
    return path


def test_ingest_file_stores_chunks_with_payloads(tmp_path: Path) -> None:
    gateway = MemoryGateway()
    summary = ingest_file(
        _write_doc(tmp_path),
        embedder=Embedder(backend="hash", dim=16),
        gateway=gateway,
        chunk_size=2000,
        batch_size=2,
    )

    assert summary.filename == "guide.md"
    assert summary.chunks_added == 3
    assert summary.estimated_tokens > 0
    assert gateway.list_filenames() == [("guide.md", 3)]

    hits = gateway.search(Embedder(backend="hash", dim=16).embed_query("x"), limit=10)
    payloads = sorted(hit.payload["chunk_index"] for hit in hits)
    assert payloads == [0, 1, 2]
    sections = {hit.payload["section"] for hit in hits}
    assert sections == {"Guide", "Install", "Usage"}


def test_ingest_file_into_faiss_gateway(tmp_path: Path) -> None:
    gateway = FaissGateway(tmp_path / "library.db", tmp_path / "library.faiss")
    embedder = Embedder(backend="hash", dim=16)
    summary = ingest_file(_write_doc(tmp_path), embedder=embedder, gateway=gateway)

    assert gateway.count() == summary.chunks_added == 3
    [hit] = gateway.search(embedder.embed_query("## Install\nRun the installer."), limit=1)
    assert hit.payload["section"] == "Install"


def test_ingest_empty_document_raises(tmp_path: Path) -> None:
    path = tmp_path / "empty.txt"
    path.write_text(" \n\t\n", encoding="utf-8")
    with pytest.raises(IngestError):
        ingest_file(path, embedder=Embedder(backend="hash", dim=8), gateway=MemoryGateway())


def test_ingest_same_file_twice_adds_chunks_again(tmp_path: Path) -> None:
    gateway = MemoryGateway()
    embedder = Embedder(backend="hash", dim=8)
    path = _write_doc(tmp_path)
    ingest_file(path, embedder=embedder, gateway=gateway)
    ingest_file(path, embedder=embedder, gateway=gateway)
    assert gateway.list_filenames() == [("guide.md", 6)]
