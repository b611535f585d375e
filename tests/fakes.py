"""Fake embedding and reranking backends for testing.

These produce deterministic, controlled outputs without loading real models.
FakeEmbeddingBackend derives vectors from a hash of the input text, so
identical inputs always produce identical vectors and distinct inputs
produce distinct ones. FakeRerankBackend scores by keyword overlap
between query and document.

Design principles:
- Fake backends produce real numpy arrays of controlled dimensionality
- Deterministic: same input → same output, always
- Inspectable: call counters and the last batch are recorded
- Failures are injected explicitly via constructor arguments
"""
import hashlib
from typing import List, Optional, Sequence

import numpy as np

from gemma_embed.services.embedding_types import RerankResult


class FakeEmbeddingBackend:
    """Deterministic embedding backend for testing.

    Produces L2-normalized float32 vectors derived from a hash of the
    input text.

    Args:
        dim: Vector dimension.
        fail_with: Exception raised by embed_batch, if set.
        fail_on_load: Exception raised by load, if set.
        drop_results: Return this many fewer vectors than requested.
    """

    def __init__(
        self,
        dim: int = 8,
        fail_with: Optional[Exception] = None,
        fail_on_load: Optional[Exception] = None,
        drop_results: int = 0,
    ) -> None:
        self._dim = dim
        self._fail_with = fail_with
        self._fail_on_load = fail_on_load
        self._drop_results = drop_results
        self._loaded = False
        self.load_count = 0
        self.unload_count = 0
        self.batch_calls = 0
        self.last_batch: Optional[List[str]] = None

    def load(self) -> None:
        if self._fail_on_load is not None:
            raise self._fail_on_load
        self._loaded = True
        self.load_count += 1

    def unload(self) -> None:
        self._loaded = False
        self.unload_count += 1

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def vector_for(self, text: str) -> np.ndarray:
        """Produce a deterministic vector from text via iterated hashing."""
        chunks: list[bytes] = []
        needed = self._dim
        seed = text.encode("utf-8")
        while needed > 0:
            seed = hashlib.sha256(seed).digest()
            chunks.append(seed)
            needed -= len(seed)
        all_bytes = b"".join(chunks)[: self._dim]

        raw_bytes = np.frombuffer(all_bytes, dtype=np.uint8).astype(np.float64)
        # Map [0, 255] -> [-1, 1]
        raw = (raw_bytes / 127.5) - 1.0
        norm = np.linalg.norm(raw)
        if norm > 0:
            raw = raw / norm
        return raw.astype(np.float32)

    def embed_batch(self, texts: Sequence[str]) -> List[np.ndarray]:
        self.batch_calls += 1
        self.last_batch = list(texts)
        if self._fail_with is not None:
            raise self._fail_with
        vectors = [self.vector_for(text) for text in texts]
        if self._drop_results:
            vectors = vectors[: max(len(vectors) - self._drop_results, 0)]
        return vectors


class FakeRerankBackend:
    """Keyword-overlap reranker for testing.

    Scores each document by the fraction of query words that appear in
    the document text (case-insensitive): all query terms present scores
    1.0, none scores 0.0. Ties keep input order.

    Args:
        fail_with: Exception raised by rerank_batch, if set.
        fail_on_load: Exception raised by load, if set.
        omit_documents: Never return document text, even when asked.
    """

    def __init__(
        self,
        fail_with: Optional[Exception] = None,
        fail_on_load: Optional[Exception] = None,
        omit_documents: bool = False,
    ) -> None:
        self._fail_with = fail_with
        self._fail_on_load = fail_on_load
        self._omit_documents = omit_documents
        self._loaded = False
        self.load_count = 0
        self.rerank_calls = 0
        self.last_return_documents: Optional[bool] = None

    def load(self) -> None:
        if self._fail_on_load is not None:
            raise self._fail_on_load
        self._loaded = True
        self.load_count += 1

    def unload(self) -> None:
        self._loaded = False

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def rerank_batch(
        self, query: str, documents: Sequence[str], return_documents: bool
    ) -> List[RerankResult]:
        self.rerank_calls += 1
        self.last_return_documents = return_documents
        if self._fail_with is not None:
            raise self._fail_with

        query_words = set(query.lower().split())
        scored = []
        for i, doc in enumerate(documents):
            doc_lower = doc.lower()
            matches = sum(1 for w in query_words if w in doc_lower)
            score = matches / len(query_words) if query_words else 0.0
            scored.append((i, score))

        scored.sort(key=lambda x: (-x[1], x[0]))
        keep_text = return_documents and not self._omit_documents
        return [
            RerankResult(document=documents[i] if keep_text else None, score=score, index=i)
            for i, score in scored
        ]


class BackendFactory:
    """Stand-in for an ONNX backend class: records how it was built.

    Called exactly like OnnxEmbeddingBackend / OnnxRerankBackend
    (``spec`` positional, options as keywords) and returns ``make(spec)``.
    """

    def __init__(self, make):
        self._make = make
        self.calls = []
        self.instances = []

    def __call__(self, spec, **kwargs):
        self.calls.append((spec, kwargs))
        backend = self._make(spec)
        self.instances.append(backend)
        return backend
