"""Cross-encoder reranking façade.

Owns one loaded reranker backend (BGE-Reranker-V2-M3 by default) and
scores documents against a query. Like TextEmbedder it does no
internal locking: serialize calls on a shared instance.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional, Sequence

from gemma_embed.config import GemmaEmbedConfig, config as default_config
from gemma_embed.exceptions import ErrorCode, GemmaEmbedError, InferenceError, ModelLoadError
from gemma_embed.observability import timed_operation
from gemma_embed.services.embedding_types import RerankResult
from gemma_embed.services.model_catalog import RerankerModelSpec, get_reranker_model
from gemma_embed.services.onnx_backends import OnnxRerankBackend

if TYPE_CHECKING:
    from gemma_embed.services.embedding_types import RerankBackend

logger = logging.getLogger(__name__)


class TextReranker:
    """Scores documents by relevance to a query.

    Args:
        backend: A loaded RerankBackend implementation.
        spec: Catalog entry for the backend's model.
    """

    def __init__(self, backend: RerankBackend, spec: RerankerModelSpec) -> None:
        self._backend = backend
        self._spec = spec

    @classmethod
    def new(cls, config: Optional[GemmaEmbedConfig] = None) -> "TextReranker":
        """Load the configured reranker (multilingual bge-reranker-v2-m3 by default).

        Raises:
            ModelLoadError: If the model is unknown or fails to load.
        """
        cfg = config or default_config
        spec = get_reranker_model(cfg.reranker_model)
        with timed_operation("reranker_load", model=spec.name):
            try:
                backend = OnnxRerankBackend(
                    spec,
                    max_length=cfg.reranker_max_tokens,
                    cache_dir=cfg.cache_dir,
                    providers=cfg.onnx_providers,
                    show_progress=cfg.show_download_progress,
                )
                backend.load()
            except GemmaEmbedError:
                raise
            except Exception as e:
                raise ModelLoadError(
                    f"Failed to load reranker model: {e}",
                    model=spec.name,
                    original_error=e,
                ) from e
        logger.info(f"Reranker ready: {spec.name}")
        return cls(backend, spec)

    @property
    def model_name(self) -> str:
        return self._spec.name

    def rerank(
        self,
        query: str,
        documents: Sequence[str],
        return_documents: bool = True,
    ) -> List[RerankResult]:
        """Rerank documents against ``query`` in one backend call.

        Args:
            query: The search query.
            documents: Document texts, possibly empty.
            return_documents: Carry each document's text in its result.

        Returns:
            One result per document in the backend's ranking (score
            descending). ``index`` points into ``documents``.

        Raises:
            TypeError: If ``documents`` is a single string rather than a list.
            InferenceError: If the backend fails, or omits a document's
                text when ``return_documents`` is set.
        """
        if isinstance(documents, str):
            raise TypeError("documents must be a list of strings, not str")
        if len(documents) == 0:
            return []

        docs = list(documents)
        with timed_operation("rerank", model=self._spec.name, documents=len(docs)) as op:
            try:
                results = self._backend.rerank_batch(query, docs, return_documents)
            except GemmaEmbedError:
                raise
            except Exception as e:
                raise InferenceError(
                    f"Reranking failed: {e}",
                    operation="rerank",
                    code=ErrorCode.RERANK_INFERENCE_FAILED,
                    original_error=e,
                ) from e
            if return_documents:
                for result in results:
                    if result.document is None:
                        raise InferenceError(
                            f"Backend returned no document text for index {result.index}",
                            operation="rerank",
                            code=ErrorCode.RERANK_DOCUMENT_MISSING,
                        )
            op["result_count"] = len(results)
        return list(results)
