"""Text embedding façade.

Resolves a model choice to an ONNX backend, loads it once, and exposes
batch and single-text embedding on top of it.

Usage:
    embedder = TextEmbedder.new_quantized()
    vectors = embedder.embed(["hello world", "hola mundo"])
    vector = embedder.embed_one("namaste duniya")
    embedder.dimension()  # 768

A TextEmbedder exclusively owns its backend and does no internal
locking. Callers sharing one instance across threads must serialize
embed()/embed_one() themselves; separate instances are independent.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional, Sequence

from gemma_embed.config import GemmaEmbedConfig, config as default_config
from gemma_embed.exceptions import ErrorCode, GemmaEmbedError, InferenceError, ModelLoadError
from gemma_embed.observability import timed_operation
from gemma_embed.services.model_catalog import (
    DEFAULT_EMBEDDING_MODEL,
    DEFAULT_QUANTIZED_EMBEDDING_MODEL,
    EmbeddingModelSpec,
    embedding_model_for,
    get_embedding_model,
)
from gemma_embed.services.onnx_backends import OnnxEmbeddingBackend
from gemma_embed.services.quantization import QuantizationType

if TYPE_CHECKING:
    import numpy as np

    from gemma_embed.services.embedding_types import EmbeddingBackend

logger = logging.getLogger(__name__)


class TextEmbedder:
    """Embeds text batches with one loaded model.

    Use the named constructors (new, new_quantized, with_model,
    with_quantization, from_config) to load a model; the plain
    constructor adopts an already-loaded backend.

    Args:
        backend: A loaded EmbeddingBackend implementation.
        spec: Catalog entry for the backend's model.
    """

    def __init__(self, backend: EmbeddingBackend, spec: EmbeddingModelSpec) -> None:
        self._backend = backend
        self._spec = spec

    @classmethod
    def new(cls, config: Optional[GemmaEmbedConfig] = None) -> "TextEmbedder":
        """Load full-precision EmbeddingGemma-300M (~1.2GB download)."""
        return cls._load(get_embedding_model(DEFAULT_EMBEDDING_MODEL), config)

    @classmethod
    def new_quantized(cls, config: Optional[GemmaEmbedConfig] = None) -> "TextEmbedder":
        """Load Q4F16 EmbeddingGemma-300M (~175MB download).

        Recommended for low-end CPUs: smaller download, faster inference,
        near-identical quality.
        """
        return cls._load(
            get_embedding_model(DEFAULT_QUANTIZED_EMBEDDING_MODEL),
            config,
            what="quantized model",
        )

    @classmethod
    def with_model(
        cls, name: str, config: Optional[GemmaEmbedConfig] = None
    ) -> "TextEmbedder":
        """Load a catalog model by key or hub repo id.

        Raises:
            ModelLoadError: If the name is not in the catalog or loading fails.
        """
        return cls._load(get_embedding_model(name), config)

    @classmethod
    def with_quantization(
        cls, quantization: QuantizationType, config: Optional[GemmaEmbedConfig] = None
    ) -> "TextEmbedder":
        """Load EmbeddingGemma-300M at an explicit precision."""
        return cls._load(embedding_model_for(quantization), config)

    @classmethod
    def from_config(cls, config: Optional[GemmaEmbedConfig] = None) -> "TextEmbedder":
        """Load the model named by the configuration.

        ``config.quantization``, when set, selects an EmbeddingGemma
        precision and takes precedence over ``config.embedding_model``.

        Raises:
            ConfigurationError: If ``config.quantization`` is not a known variant.
            ModelLoadError: If the model is unknown or fails to load.
        """
        cfg = config or default_config
        if cfg.quantization:
            return cls.with_quantization(QuantizationType.from_name(cfg.quantization), cfg)
        return cls.with_model(cfg.embedding_model, cfg)

    @classmethod
    def _load(
        cls,
        spec: EmbeddingModelSpec,
        config: Optional[GemmaEmbedConfig],
        what: str = "model",
    ) -> "TextEmbedder":
        """Build and load a backend for ``spec``; nothing is returned on failure."""
        cfg = config or default_config
        with timed_operation("embedder_load", model=spec.name):
            try:
                backend = OnnxEmbeddingBackend(
                    spec,
                    max_length=cfg.embedding_max_tokens,
                    cache_dir=cfg.cache_dir,
                    providers=cfg.onnx_providers,
                    show_progress=cfg.show_download_progress,
                )
                backend.load()
            except GemmaEmbedError:
                raise
            except Exception as e:
                raise ModelLoadError(
                    f"Failed to load {what}: {e}",
                    model=spec.name,
                    original_error=e,
                ) from e
        logger.info(
            f"Embedder ready: {spec.name} "
            f"(quantization={spec.quantization.name if spec.quantization else 'n/a'}, "
            f"dim={spec.dimension})"
        )
        return cls(backend, spec)

    @property
    def model_name(self) -> str:
        """Catalog name of the loaded model."""
        return self._spec.name

    def dimension(self) -> int:
        """Output vector width (768 for EmbeddingGemma-300M)."""
        return self._spec.dimension

    def embed(self, texts: Sequence[str]) -> List["np.ndarray"]:
        """Embed a batch of texts in one backend call.

        Args:
            texts: Texts to embed, possibly empty.

        Returns:
            One vector per text, in input order. An empty input returns
            an empty list without touching the backend.

        Raises:
            TypeError: If ``texts`` is a single string rather than a list.
            InferenceError: If the backend fails or returns the wrong
                number of vectors.
        """
        if isinstance(texts, str):
            raise TypeError("texts must be a list of strings, not str")
        if len(texts) == 0:
            return []

        batch = list(texts)
        with timed_operation("embed", model=self._spec.name, batch_size=len(batch)) as op:
            try:
                vectors = self._backend.embed_batch(batch)
            except GemmaEmbedError:
                raise
            except Exception as e:
                raise InferenceError(
                    f"Embedding failed: {e}",
                    operation="embed",
                    code=ErrorCode.EMBEDDING_INFERENCE_FAILED,
                    original_error=e,
                ) from e

            if len(vectors) == 0:
                raise InferenceError(
                    "No embedding generated",
                    operation="embed",
                    code=ErrorCode.EMBEDDING_EMPTY_RESULT,
                )
            if len(vectors) != len(batch):
                raise InferenceError(
                    f"Backend returned {len(vectors)} vectors for {len(batch)} texts",
                    operation="embed",
                    code=ErrorCode.EMBEDDING_INFERENCE_FAILED,
                )
            op["result_count"] = len(vectors)
        return list(vectors)

    def embed_one(self, text: str) -> "np.ndarray":
        """Embed a single text.

        Raises:
            InferenceError: If inference fails or yields no vector.
        """
        vectors = self.embed([text])
        if not vectors:
            raise InferenceError(
                "No embedding generated",
                operation="embed_one",
                code=ErrorCode.EMBEDDING_EMPTY_RESULT,
            )
        return vectors[0]
