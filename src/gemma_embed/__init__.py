"""
gemma-embed - Fast multilingual text embeddings and reranking on ONNX Runtime.

Wraps EmbeddingGemma-300M (100+ languages, 768-dim vectors) in five
quantization variants and the BGE-Reranker-V2-M3 cross-encoder behind a
small synchronous API. Model files are fetched from the HuggingFace Hub
on first use.

Call configure_logging() to attach log handlers; per-operation timings
and error counts for embed, rerank and model loads are available from
``metrics.get_metrics()`` and ``metrics.get_summary()``.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("gemma-embed")
except PackageNotFoundError:
    __version__ = "0.1.0"

from gemma_embed.bindings import QuantizationType, Reranker, TextEmbedder  # noqa: E402
from gemma_embed.observability import configure_logging, metrics  # noqa: E402

__all__ = [
    "QuantizationType",
    "Reranker",
    "TextEmbedder",
    "configure_logging",
    "metrics",
    "__version__",
]
