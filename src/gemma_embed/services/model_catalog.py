"""Catalog of supported embedding and reranker models.

Each entry specifies everything needed to construct an ONNX backend:
hub repository, ONNX filename(s), output dimension, max token length
and pooling mode. Embedding entries for EmbeddingGemma derive their
filenames from a QuantizationType so a new precision tier only needs
a new enum member.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from gemma_embed.exceptions import ErrorCode, ModelLoadError
from gemma_embed.services.quantization import QuantizationType

EMBEDDINGGEMMA_REPO = "onnx-community/embeddinggemma-300m-ONNX"


@dataclass(frozen=True)
class EmbeddingModelSpec:
    """Static description of an embedding model.

    ``output_mode`` is ``"direct"`` for models that emit a pooled
    ``sentence_embedding`` output (EmbeddingGemma) and ``"cls"`` for
    BERT-style models pooled on the first token.
    """

    name: str
    model_id: str
    dimension: int
    max_tokens: int
    output_mode: str = "direct"
    quantization: Optional[QuantizationType] = None
    onnx_subfolder: str = "onnx"

    @property
    def onnx_filename(self) -> str:
        base = self.quantization.model_filename() if self.quantization else "model.onnx"
        return f"{self.onnx_subfolder}/{base}"

    @property
    def data_filename(self) -> Optional[str]:
        """External weight file, or None for single-file exports."""
        if self.quantization is None:
            return None
        return f"{self.onnx_subfolder}/{self.quantization.data_filename()}"


@dataclass(frozen=True)
class RerankerModelSpec:
    """Static description of a cross-encoder reranker."""

    name: str
    model_id: str
    onnx_filename: str
    max_tokens: int
    extra_files: Tuple[str, ...] = field(default_factory=tuple)


def _gemma(name: str, quantization: QuantizationType) -> EmbeddingModelSpec:
    return EmbeddingModelSpec(
        name=name,
        model_id=EMBEDDINGGEMMA_REPO,
        dimension=768,
        max_tokens=2048,
        output_mode="direct",
        quantization=quantization,
    )


EMBEDDING_MODELS: Dict[str, EmbeddingModelSpec] = {
    # EmbeddingGemma-300M: 100+ languages, 768-dim, pre-pooled output
    "embeddinggemma-300m": _gemma("embeddinggemma-300m", QuantizationType.FULL),
    "embeddinggemma-300m-fp16": _gemma("embeddinggemma-300m-fp16", QuantizationType.FP16),
    "embeddinggemma-300m-q4": _gemma("embeddinggemma-300m-q4", QuantizationType.Q4),
    "embeddinggemma-300m-q4f16": _gemma("embeddinggemma-300m-q4f16", QuantizationType.Q4F16),
    "embeddinggemma-300m-quantized": _gemma(
        "embeddinggemma-300m-quantized", QuantizationType.QUANTIZED
    ),
    # Alibaba-NLP/gte-modernbert-base: English, 768-dim, CLS pooling, single file
    "gte-modernbert-base": EmbeddingModelSpec(
        name="gte-modernbert-base",
        model_id="Alibaba-NLP/gte-modernbert-base",
        dimension=768,
        max_tokens=8192,
        output_mode="cls",
    ),
}

RERANKER_MODELS: Dict[str, RerankerModelSpec] = {
    # Community O4 export of BAAI/bge-reranker-v2-m3 (multilingual).
    # ONNX file at repo root with external weights.
    "bge-reranker-v2-m3": RerankerModelSpec(
        name="bge-reranker-v2-m3",
        model_id="hooman650/bge-reranker-v2-m3-onnx-o4",
        onnx_filename="model.onnx",
        max_tokens=8192,
        extra_files=("model.onnx.data",),
    ),
}

DEFAULT_EMBEDDING_MODEL = "embeddinggemma-300m"
DEFAULT_QUANTIZED_EMBEDDING_MODEL = "embeddinggemma-300m-q4f16"
DEFAULT_RERANKER_MODEL = "bge-reranker-v2-m3"

# Hub repo ids accepted in place of catalog keys
_EMBEDDING_ALIASES = {
    EMBEDDINGGEMMA_REPO.lower(): DEFAULT_EMBEDDING_MODEL,
    "google/embeddinggemma-300m": DEFAULT_EMBEDDING_MODEL,
    "alibaba-nlp/gte-modernbert-base": "gte-modernbert-base",
}
_RERANKER_ALIASES = {
    "baai/bge-reranker-v2-m3": DEFAULT_RERANKER_MODEL,
    "hooman650/bge-reranker-v2-m3-onnx-o4": DEFAULT_RERANKER_MODEL,
}


def get_embedding_model(name: str) -> EmbeddingModelSpec:
    """Look up an embedding model by catalog key or hub repo id.

    Raises:
        ModelLoadError: If the model is not in the catalog.
    """
    key = name.strip().lower()
    key = _EMBEDDING_ALIASES.get(key, key)
    if key not in EMBEDDING_MODELS:
        available = ", ".join(list_embedding_models())
        raise ModelLoadError(
            f"Unsupported embedding model {name!r}. Available: {available}",
            model=name,
            code=ErrorCode.MODEL_NOT_SUPPORTED,
        )
    return EMBEDDING_MODELS[key]


def get_reranker_model(name: str) -> RerankerModelSpec:
    """Look up a reranker model by catalog key or hub repo id.

    Raises:
        ModelLoadError: If the model is not in the catalog.
    """
    key = name.strip().lower()
    key = _RERANKER_ALIASES.get(key, key)
    if key not in RERANKER_MODELS:
        available = ", ".join(list_reranker_models())
        raise ModelLoadError(
            f"Unsupported reranker model {name!r}. Available: {available}",
            model=name,
            code=ErrorCode.MODEL_NOT_SUPPORTED,
        )
    return RERANKER_MODELS[key]


def embedding_model_for(quantization: QuantizationType) -> EmbeddingModelSpec:
    """EmbeddingGemma spec at the given precision."""
    for spec in EMBEDDING_MODELS.values():
        if spec.model_id == EMBEDDINGGEMMA_REPO and spec.quantization is quantization:
            return spec
    # Unreachable while every QuantizationType has a catalog entry
    raise ModelLoadError(
        f"No EmbeddingGemma export for quantization {quantization.name}",
        model=EMBEDDINGGEMMA_REPO,
        code=ErrorCode.MODEL_NOT_SUPPORTED,
    )


def list_embedding_models() -> List[str]:
    return sorted(EMBEDDING_MODELS)


def list_reranker_models() -> List[str]:
    return sorted(RERANKER_MODELS)
