"""Exception types raised across the library."""

from __future__ import annotations


class GhostLibrarianError(Exception):
    """Base class for library errors."""


class RetrievalError(GhostLibrarianError):
    """The vector store failed to search or write."""


class EmbeddingError(GhostLibrarianError):
    """The embedding backend failed or returned malformed output."""


class GenerationError(GhostLibrarianError):
    """The generative model could not be reached or returned an error."""


class IngestError(GhostLibrarianError):
    """A document could not be read, parsed or chunked."""
