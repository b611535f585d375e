"""Configuration module for gemma-embed."""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Project-root .env first, then the user-level one
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

_USER_ENV = Path.home() / ".gemma_embed" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)

_MIN_TOKENS = 16
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class GemmaEmbedConfig(BaseModel):
    """Runtime settings shared by the embedding and reranking façades."""

    # Where huggingface_hub caches fetched model files (None = hub default)
    cache_dir: Optional[Path] = Field(
        default_factory=lambda: (
            Path(os.getenv("GEMMA_EMBED_CACHE_DIR"))
            if os.getenv("GEMMA_EMBED_CACHE_DIR")
            else None
        )
    )
    # ONNX execution provider preference: "auto" (detect GPU/CPU), "cpu", or
    # comma-separated list like "CUDAExecutionProvider,CPUExecutionProvider"
    onnx_providers: str = Field(
        default_factory=lambda: os.getenv("GEMMA_EMBED_ONNX_PROVIDERS", "auto")
    )
    show_download_progress: bool = Field(
        default_factory=lambda: _env_flag("GEMMA_EMBED_SHOW_PROGRESS", "true")
    )
    # Catalog key or hub repo id used by TextEmbedder.from_config()
    embedding_model: str = Field(
        default_factory=lambda: os.getenv("GEMMA_EMBED_MODEL", "embeddinggemma-300m")
    )
    # Optional EmbeddingGemma precision ("q4f16", "int8", ...). When set,
    # TextEmbedder.from_config() loads that variant instead of embedding_model.
    quantization: Optional[str] = Field(
        default_factory=lambda: os.getenv("GEMMA_EMBED_QUANTIZATION") or None
    )
    reranker_model: str = Field(
        default_factory=lambda: os.getenv(
            "GEMMA_EMBED_RERANKER_MODEL", "bge-reranker-v2-m3"
        )
    )
    embedding_max_tokens: int = Field(
        default_factory=lambda: int(os.getenv("GEMMA_EMBED_MAX_TOKENS", "2048"))
    )
    reranker_max_tokens: int = Field(
        default_factory=lambda: int(
            os.getenv("GEMMA_EMBED_RERANKER_MAX_TOKENS", "512")
        )
    )
    log_level: str = Field(
        default_factory=lambda: os.getenv("GEMMA_EMBED_LOG_LEVEL", "INFO").upper()
    )

    @model_validator(mode="after")
    def _validate(self) -> "GemmaEmbedConfig":
        """Check token limits and log level."""
        if self.embedding_max_tokens < _MIN_TOKENS:
            raise ValueError(f"embedding_max_tokens must be >= {_MIN_TOKENS}")
        if self.reranker_max_tokens < _MIN_TOKENS:
            raise ValueError(f"reranker_max_tokens must be >= {_MIN_TOKENS}")
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {', '.join(_LOG_LEVELS)}, "
                f"got {self.log_level!r}"
            )
        return self

    def get_log_level(self) -> int:
        return getattr(logging, self.log_level)


# Create a global config instance
config = GemmaEmbedConfig()
