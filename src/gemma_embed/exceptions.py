"""Custom exceptions for gemma-embed.

Provides a structured exception hierarchy with error codes and
machine-readable error information. Backend failures are always
wrapped in one of these types with the original diagnostic preserved.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Model load errors (1xxx)
    MODEL_LOAD_FAILED = 1001
    MODEL_NOT_SUPPORTED = 1002
    ARTIFACT_FETCH_FAILED = 1003

    # Embedding errors (20xx)
    EMBEDDING_INFERENCE_FAILED = 2001
    EMBEDDING_EMPTY_RESULT = 2002

    # Rerank errors (21xx)
    RERANK_INFERENCE_FAILED = 2101
    RERANK_DOCUMENT_MISSING = 2102

    # Configuration errors (3xxx)
    CONFIG_INVALID = 3001


class GemmaEmbedError(Exception):
    """Base exception for all gemma-embed errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.MODEL_LOAD_FAILED,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class ModelLoadError(GemmaEmbedError):
    """Raised when a backend cannot be constructed.

    Covers artifact fetch failures, missing or corrupt weight files and
    unsupported model identifiers. Always raised during façade construction.
    """

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        code: ErrorCode = ErrorCode.MODEL_LOAD_FAILED,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if model:
            details["model"] = model
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.model = model
        self.original_error = original_error


class InferenceError(GemmaEmbedError):
    """Raised when an embed or rerank call fails on a loaded backend."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        code: ErrorCode = ErrorCode.EMBEDDING_INFERENCE_FAILED,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.original_error = original_error


class ConfigurationError(GemmaEmbedError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONFIG_INVALID
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, code=code, details=details)
        self.config_key = config_key
