"""Plain-Python calling convention for gemma-embed.

Thin adapters over the service façades: outputs are built-in lists and
tuples, and every gemma-embed error surfaces as ``RuntimeError`` with the
original diagnostic in its message (the original exception is chained).
Passing a single string where a list of texts is expected raises TypeError.

    from gemma_embed import TextEmbedder, Reranker

    embedder = TextEmbedder.new_quantized()
    embedder.embed(["hello world"])         # [[0.01, ...]]
    Reranker().rerank("best pizza", docs)   # [("I love pizza", 3.2, 0), ...]
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from gemma_embed.exceptions import GemmaEmbedError
from gemma_embed.services import embedder as _embedder
from gemma_embed.services import reranker as _reranker
from gemma_embed.services.quantization import QuantizationType

__all__ = ["QuantizationType", "Reranker", "TextEmbedder"]


def _runtime_error(error: GemmaEmbedError, prefix: Optional[str] = None) -> RuntimeError:
    if prefix is None:
        return RuntimeError(error.message)
    return RuntimeError(f"{prefix}: {error.message}")


class TextEmbedder:
    """EmbeddingGemma text embedder.

    ``TextEmbedder()`` loads the full-precision model (~1.2GB, downloaded
    on first use). ``TextEmbedder.new_quantized()`` loads the Q4F16 model
    (~175MB), recommended for low-end CPUs.
    """

    def __init__(self) -> None:
        try:
            self._inner = _embedder.TextEmbedder.new()
        except GemmaEmbedError as e:
            raise _runtime_error(e, "Failed to create embedder") from e

    @classmethod
    def _wrap(cls, inner: _embedder.TextEmbedder) -> "TextEmbedder":
        obj = cls.__new__(cls)
        obj._inner = inner
        return obj

    @classmethod
    def new_quantized(cls) -> "TextEmbedder":
        try:
            return cls._wrap(_embedder.TextEmbedder.new_quantized())
        except GemmaEmbedError as e:
            raise _runtime_error(e, "Failed to create quantized embedder") from e

    @classmethod
    def with_model(cls, name: str) -> "TextEmbedder":
        """Load a catalog model by key (e.g. ``"gte-modernbert-base"``) or repo id."""
        try:
            return cls._wrap(_embedder.TextEmbedder.with_model(name))
        except GemmaEmbedError as e:
            raise _runtime_error(e, "Failed to create embedder") from e

    @classmethod
    def with_quantization(cls, quantization: QuantizationType) -> "TextEmbedder":
        try:
            return cls._wrap(_embedder.TextEmbedder.with_quantization(quantization))
        except GemmaEmbedError as e:
            raise _runtime_error(e, "Failed to create embedder") from e

    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        """Generate embeddings for a list of texts (for indexing).

        Args:
            texts: List of strings to embed

        Returns:
            List of embedding vectors (each is a list of floats)
        """
        try:
            return [vector.tolist() for vector in self._inner.embed(texts)]
        except GemmaEmbedError as e:
            raise _runtime_error(e) from e

    def embed_one(self, text: str) -> List[float]:
        """Generate embedding for a single text."""
        try:
            return self._inner.embed_one(text).tolist()
        except GemmaEmbedError as e:
            raise _runtime_error(e) from e

    def dimension(self) -> int:
        """Embedding dimension (768 for EmbeddingGemma-300M)."""
        return self._inner.dimension()


class Reranker:
    """Multilingual cross-encoder reranker (BGE-Reranker-V2-M3)."""

    def __init__(self) -> None:
        try:
            self._inner = _reranker.TextReranker.new()
        except GemmaEmbedError as e:
            raise _runtime_error(e, "Failed to create reranker") from e

    @classmethod
    def _wrap(cls, inner: _reranker.TextReranker) -> "Reranker":
        obj = cls.__new__(cls)
        obj._inner = inner
        return obj

    def rerank(
        self, query: str, documents: Sequence[str]
    ) -> List[Tuple[str, float, int]]:
        """Rank documents against a query.

        Returns:
            ``(document, score, original_index)`` tuples, best first.
        """
        try:
            results = self._inner.rerank(query, documents, return_documents=True)
            return [(r.document, r.score, r.index) for r in results]
        except GemmaEmbedError as e:
            raise _runtime_error(e) from e
