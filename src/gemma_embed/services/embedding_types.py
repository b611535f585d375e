"""Type protocols for embedding and reranking backends.

Defines the structural contracts that both production ONNX backends
and test fakes must satisfy. Uses Protocol (PEP 544) for structural
subtyping, so implementations don't need to inherit from these.

This module is importable without numpy installed (annotations are
deferred via __future__). Actual backends require numpy at runtime.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Protocol, Sequence, runtime_checkable

if TYPE_CHECKING:
    import numpy as np


@dataclass(frozen=True)
class RerankResult:
    """One scored document.

    ``index`` is the document's position in the caller's original,
    unsorted input list. ``document`` is None when the backend was asked
    not to return document text.
    """

    document: Optional[str]
    score: float
    index: int


@runtime_checkable
class EmbeddingBackend(Protocol):
    """Contract for embedding text batches into dense vectors."""

    def load(self) -> None:
        """Fetch artifacts and load the model. Idempotent."""
        ...

    def unload(self) -> None:
        """Release model from memory. Idempotent."""
        ...

    @property
    def is_loaded(self) -> bool:
        """Whether the model is currently loaded in memory."""
        ...

    def embed_batch(self, texts: Sequence[str]) -> List[np.ndarray]:
        """Embed a whole batch in one call.

        Args:
            texts: Non-empty sequence of input texts.

        Returns:
            One 1-D float32 array per input text, in input order.
        """
        ...


@runtime_checkable
class RerankBackend(Protocol):
    """Contract for scoring documents against a query."""

    def load(self) -> None:
        """Fetch artifacts and load the model. Idempotent."""
        ...

    def unload(self) -> None:
        """Release model from memory. Idempotent."""
        ...

    @property
    def is_loaded(self) -> bool:
        """Whether the model is currently loaded in memory."""
        ...

    def rerank_batch(
        self, query: str, documents: Sequence[str], return_documents: bool
    ) -> List[RerankResult]:
        """Score every document against ``query``.

        Args:
            query: The search query.
            documents: Non-empty sequence of document texts.
            return_documents: Include document text in each result.

        Returns:
            One RerankResult per document, sorted by score descending.
        """
        ...
