"""Quantization variants for EmbeddingGemma ONNX exports.

Maps a logical precision/size tradeoff to the pair of artifact filenames
(ONNX graph + external weight data) the backend loader must fetch.
"""

from __future__ import annotations

from enum import Enum

from gemma_embed.exceptions import ConfigurationError


class QuantizationType(Enum):
    """Precision variants of the EmbeddingGemma-300M ONNX export."""

    FULL = 0  # FP32, ~1.2GB
    FP16 = 1  # ~617MB
    Q4 = 2  # ~197MB
    Q4F16 = 3  # Q4 weights, FP16 embeddings, ~175MB (recommended)
    QUANTIZED = 4  # INT8, ~309MB

    @classmethod
    def default(cls) -> "QuantizationType":
        return cls.Q4F16

    @classmethod
    def from_name(cls, name: str) -> "QuantizationType":
        """Parse a case-insensitive variant name such as ``"q4f16"``.

        Accepts ``"int8"`` as an alias for QUANTIZED and ``"fp32"`` for FULL.
        """
        key = name.strip().upper()
        key = _ALIASES.get(key, key)
        try:
            return cls[key]
        except KeyError:
            valid = ", ".join(m.name.lower() for m in cls)
            raise ConfigurationError(
                f"Unknown quantization {name!r} (expected one of: {valid})",
                config_key="quantization",
            ) from None

    def model_filename(self) -> str:
        """ONNX graph filename for this variant."""
        return _FILENAMES[self][0]

    def data_filename(self) -> str:
        """External weight data filename for this variant."""
        return _FILENAMES[self][1]


_FILENAMES = {
    QuantizationType.FULL: ("model.onnx", "model.onnx_data"),
    QuantizationType.FP16: ("model_fp16.onnx", "model_fp16.onnx_data"),
    QuantizationType.Q4: ("model_q4.onnx", "model_q4.onnx_data"),
    QuantizationType.Q4F16: ("model_q4f16.onnx", "model_q4f16.onnx_data"),
    QuantizationType.QUANTIZED: ("model_quantized.onnx", "model_quantized.onnx_data"),
}

_ALIASES = {"FP32": "FULL", "INT8": "QUANTIZED"}
