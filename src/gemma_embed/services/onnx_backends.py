"""ONNX Runtime backends for embedding and reranking.

Implements EmbeddingBackend and RerankBackend using onnxruntime and
tokenizers directly, with model artifacts fetched from the HuggingFace
Hub on first use and cached by huggingface_hub.

Models:
- Embedding: onnx-community/embeddinggemma-300m-ONNX (303M params, 768-dim)
- Reranker: BAAI/bge-reranker-v2-m3 (community ONNX export)
"""

from __future__ import annotations

import logging
import os
import resource
import time as _time
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np

from gemma_embed.exceptions import ErrorCode, ModelLoadError
from gemma_embed.services.embedding_types import RerankResult
from gemma_embed.services.model_catalog import EmbeddingModelSpec, RerankerModelSpec

logger = logging.getLogger(__name__)


def _get_rss_mb() -> float:
    """Return current RSS (Resident Set Size) in MB via /proc on Linux,
    falling back to resource.getrusage elsewhere."""
    try:
        with open("/proc/self/status") as f:
            for line in f:
                if line.startswith("VmRSS:"):
                    return int(line.split()[1]) / 1024  # kB → MB
    except (OSError, ValueError):
        pass
    # Fallback: ru_maxrss is in KB on Linux
    return resource.getrusage(resource.RUSAGE_SELF).ru_maxrss / 1024


# Lazy imports, populated by _ensure_imports()
_ort = None
_tokenizers = None
_hf_hub = None


def _ensure_imports() -> None:
    """Import inference dependencies, raising a clear error if missing."""
    global _ort, _tokenizers, _hf_hub
    if _ort is None:
        try:
            import onnxruntime as ort

            _ort = ort
        except ImportError:
            raise ImportError(
                "onnxruntime is required for inference. "
                "Install with: pip install gemma-embed"
            )
    if _tokenizers is None:
        try:
            import tokenizers as tok

            _tokenizers = tok
        except ImportError:
            raise ImportError(
                "tokenizers is required for inference. "
                "Install with: pip install gemma-embed"
            )
    if _hf_hub is None:
        try:
            import huggingface_hub as hfh
            import huggingface_hub.utils  # noqa: F401  (progress bar toggles)

            _hf_hub = hfh
        except ImportError:
            raise ImportError(
                "huggingface-hub is required to fetch models. "
                "Install with: pip install gemma-embed"
            )


def _resolve_providers(preference: str = "auto") -> List[str]:
    """Resolve ONNX execution providers based on preference string.

    Args:
        preference: One of:
            - "auto": detect available providers (CUDA > CPU)
            - "cpu": force CPUExecutionProvider only
            - comma-separated list: use as-is (e.g. "CUDAExecutionProvider,CPUExecutionProvider")

    Returns:
        Ordered list of provider names for ort.InferenceSession.
    """
    _ensure_imports()

    pref = preference.strip().lower()

    if pref == "cpu":
        return ["CPUExecutionProvider"]

    if pref == "auto":
        available = _ort.get_available_providers()
        providers = []
        if "CUDAExecutionProvider" in available:
            providers.append("CUDAExecutionProvider")
        # Always include CPU as fallback
        providers.append("CPUExecutionProvider")
        return providers

    return [p.strip() for p in preference.split(",") if p.strip()]


def _cuda_session_options() -> dict:
    """Return provider_options for CUDA with arena strategy and VRAM cap.

    The VRAM limit defaults to 12GB and can be overridden via the
    ``GEMMA_EMBED_GPU_MEM_LIMIT_GB`` environment variable.
    """
    limit_gb = float(os.environ.get("GEMMA_EMBED_GPU_MEM_LIMIT_GB", "12"))
    return {
        "CUDAExecutionProvider": {
            "arena_extend_strategy": "kSameAsRequested",
            "gpu_mem_limit": str(int(limit_gb * 1024 * 1024 * 1024)),
        }
    }


def _download_model_files(
    model_id: str,
    filenames: List[str],
    cache_dir: Optional[Path] = None,
    show_progress: bool = True,
) -> Path:
    """Download model files from HuggingFace Hub and return the snapshot directory.

    Progress bars are switched on or off for the duration of the call and
    the previous global setting is restored afterwards.

    Raises:
        ModelLoadError: If the hub download fails.
    """
    _ensure_imports()
    hf_utils = _hf_hub.utils
    was_disabled = hf_utils.are_progress_bars_disabled()
    if show_progress:
        hf_utils.enable_progress_bars()
    else:
        hf_utils.disable_progress_bars()
    try:
        snapshot_dir = _hf_hub.snapshot_download(
            repo_id=model_id,
            allow_patterns=filenames,
            cache_dir=str(cache_dir) if cache_dir else None,
        )
    except Exception as e:
        raise ModelLoadError(
            f"Failed to fetch model files for {model_id}: {e}",
            model=model_id,
            code=ErrorCode.ARTIFACT_FETCH_FAILED,
            original_error=e,
        ) from e
    finally:
        if was_disabled:
            hf_utils.disable_progress_bars()
        else:
            hf_utils.enable_progress_bars()
    return Path(snapshot_dir)


def _create_session(onnx_path: Path, providers_pref: str):
    """Build an InferenceSession with full graph optimization."""
    sess_options = _ort.SessionOptions()
    sess_options.graph_optimization_level = _ort.GraphOptimizationLevel.ORT_ENABLE_ALL

    providers = _resolve_providers(providers_pref)

    # The CPU arena allocator never returns memory between batches
    # (onnxruntime#23339), so RSS would only grow.
    if providers == ["CPUExecutionProvider"]:
        sess_options.enable_cpu_mem_arena = False

    cuda_opts = _cuda_session_options()
    provider_options = [cuda_opts.get(p, {}) for p in providers]

    return _ort.InferenceSession(
        str(onnx_path),
        sess_options=sess_options,
        providers=providers,
        provider_options=provider_options,
    )


def _load_tokenizer(model_dir: Path, max_length: int):
    tokenizer = _tokenizers.Tokenizer.from_file(str(model_dir / "tokenizer.json"))
    tokenizer.enable_truncation(max_length=max_length)
    tokenizer.enable_padding(length=None)  # Dynamic padding per batch
    return tokenizer


def _build_feed(session, input_ids, attention_mask, token_type_ids=None) -> dict:
    """Map tokenized arrays onto the inputs this model actually declares."""
    input_names = {inp.name for inp in session.get_inputs()}
    feed = {}
    if "input_ids" in input_names:
        feed["input_ids"] = input_ids
    if "attention_mask" in input_names:
        feed["attention_mask"] = attention_mask
    if "token_type_ids" in input_names:
        feed["token_type_ids"] = (
            token_type_ids if token_type_ids is not None else np.zeros_like(input_ids)
        )
    return feed


class OnnxEmbeddingBackend:
    """Embedding backend using direct ONNX Runtime inference.

    Not thread-safe: one instance must be driven by one thread at a time.

    Args:
        spec: Catalog entry describing the model and its ONNX files.
        max_length: Maximum token length for truncation. Capped at the
            model's own limit.
        cache_dir: Optional custom cache directory for model files.
        providers: Provider preference string ("auto", "cpu", or comma-separated).
        show_progress: Show download progress bars while fetching artifacts.
    """

    def __init__(
        self,
        spec: EmbeddingModelSpec,
        max_length: Optional[int] = None,
        cache_dir: Optional[Path] = None,
        providers: str = "auto",
        show_progress: bool = True,
    ) -> None:
        if spec.output_mode not in ("cls", "direct"):
            raise ValueError(
                f"output_mode must be 'cls' or 'direct', got {spec.output_mode!r}"
            )
        self._spec = spec
        self._max_length = min(max_length or spec.max_tokens, spec.max_tokens)
        self._cache_dir = cache_dir
        self._providers_pref = providers
        self._show_progress = show_progress
        self._session: Optional[object] = None  # ort.InferenceSession
        self._tokenizer: Optional[object] = None  # tokenizers.Tokenizer

    @property
    def spec(self) -> EmbeddingModelSpec:
        return self._spec

    def load(self) -> None:
        """Download and load the ONNX model and tokenizer."""
        if self._session is not None:
            return

        _ensure_imports()
        rss_before = _get_rss_mb()
        logger.info(
            f"Loading embedding model: {self._spec.model_id} "
            f"[{self._spec.onnx_filename}] "
            f"(RSS before load: {rss_before:.0f}MB)"
        )

        download_patterns = [
            self._spec.onnx_filename,
            "tokenizer.json",
            "tokenizer_config.json",
        ]
        if self._spec.data_filename:
            download_patterns.append(self._spec.data_filename)
        model_dir = _download_model_files(
            self._spec.model_id,
            download_patterns,
            self._cache_dir,
            self._show_progress,
        )

        onnx_path = model_dir / self._spec.onnx_filename
        if not onnx_path.exists():
            raise FileNotFoundError(
                f"ONNX model not found at {onnx_path}. "
                f"Check that {self._spec.model_id} has an ONNX model at "
                f"{self._spec.onnx_filename}"
            )

        self._tokenizer = _load_tokenizer(model_dir, self._max_length)
        self._session = _create_session(onnx_path, self._providers_pref)

        active = self._session.get_providers()
        rss_after = _get_rss_mb()
        logger.info(
            f"Embedding model loaded: {self._spec.name}, dim={self._spec.dimension}, "
            f"max_tokens={self._max_length}, providers={active}, "
            f"RSS: {rss_after:.0f}MB (+{rss_after - rss_before:.0f}MB)"
        )

    def unload(self) -> None:
        """Release model from memory."""
        self._session = None
        self._tokenizer = None
        logger.info(f"Embedding model unloaded: {self._spec.name}")

    @property
    def is_loaded(self) -> bool:
        return self._session is not None

    def _tokenize(self, texts: Sequence[str]) -> dict:
        """Tokenize texts and return numpy arrays for ONNX input."""
        encodings = self._tokenizer.encode_batch(list(texts))

        max_len = max(len(e.ids) for e in encodings)

        input_ids = np.zeros((len(texts), max_len), dtype=np.int64)
        attention_mask = np.zeros((len(texts), max_len), dtype=np.int64)

        for i, encoding in enumerate(encodings):
            length = len(encoding.ids)
            input_ids[i, :length] = encoding.ids
            attention_mask[i, :length] = encoding.attention_mask

        return {"input_ids": input_ids, "attention_mask": attention_mask}

    def _forward(self, inputs: dict) -> np.ndarray:
        """Run ONNX inference and apply pooling + L2 normalization.

        - ``"cls"``: take the first token of the (batch, seq_len, hidden)
          last hidden state.
        - ``"direct"``: the model already produces pooled (batch, dim)
          embeddings; prefer the ``sentence_embedding`` output.
        """
        feed = _build_feed(
            self._session, inputs["input_ids"], inputs["attention_mask"]
        )
        outputs = self._session.run(None, feed)

        if self._spec.output_mode == "direct":
            output_names = [o.name for o in self._session.get_outputs()]
            embeddings = None
            if "sentence_embedding" in output_names:
                embeddings = outputs[output_names.index("sentence_embedding")]
            else:
                for out in outputs:
                    if out.ndim == 2:
                        embeddings = out
                        break
            if embeddings is None:
                # All outputs are 3D: fall back to CLS on the first one
                embeddings = outputs[0][:, 0, :]
        else:
            embeddings = outputs[0][:, 0, :]

        embeddings = np.asarray(embeddings, dtype=np.float32)
        norms = np.linalg.norm(embeddings, axis=1, keepdims=True)
        norms = np.maximum(norms, 1e-12)
        return embeddings / norms

    def embed_batch(self, texts: Sequence[str]) -> List[np.ndarray]:
        """Embed the whole batch in a single forward pass."""
        if not self.is_loaded:
            self.load()
        if not texts:
            return []

        t0 = _time.perf_counter()
        inputs = self._tokenize(texts)
        embeddings = self._forward(inputs)
        elapsed = _time.perf_counter() - t0
        logger.debug(
            f"embed_batch: {len(texts)} texts, "
            f"seq_len={inputs['input_ids'].shape[1]}, {elapsed:.2f}s"
        )
        return [embeddings[i] for i in range(len(texts))]


class OnnxRerankBackend:
    """Cross-encoder reranker using direct ONNX Runtime inference.

    Takes query-document pairs and produces one relevance score per
    document. Not thread-safe.

    Args:
        spec: Catalog entry describing the reranker and its ONNX files.
        max_length: Maximum token length for query+document pairs.
        cache_dir: Optional custom cache directory.
        providers: Provider preference string ("auto", "cpu", or comma-separated).
        show_progress: Show download progress bars while fetching artifacts.
    """

    def __init__(
        self,
        spec: RerankerModelSpec,
        max_length: Optional[int] = None,
        cache_dir: Optional[Path] = None,
        providers: str = "auto",
        show_progress: bool = True,
    ) -> None:
        self._spec = spec
        self._max_length = min(max_length or spec.max_tokens, spec.max_tokens)
        self._cache_dir = cache_dir
        self._providers_pref = providers
        self._show_progress = show_progress
        self._session: Optional[object] = None
        self._tokenizer: Optional[object] = None

    @property
    def spec(self) -> RerankerModelSpec:
        return self._spec

    def load(self) -> None:
        """Download and load the ONNX reranker model and tokenizer."""
        if self._session is not None:
            return

        _ensure_imports()
        rss_before = _get_rss_mb()
        logger.info(
            f"Loading reranker model: {self._spec.model_id} "
            f"(RSS before load: {rss_before:.0f}MB)"
        )

        download_patterns = [
            self._spec.onnx_filename,
            "tokenizer.json",
            "tokenizer_config.json",
        ] + list(self._spec.extra_files)
        model_dir = _download_model_files(
            self._spec.model_id,
            download_patterns,
            self._cache_dir,
            self._show_progress,
        )

        onnx_path = model_dir / self._spec.onnx_filename
        if not onnx_path.exists():
            raise FileNotFoundError(
                f"Reranker ONNX model not found at {onnx_path}. "
                f"Check that {self._spec.model_id} has an ONNX model at "
                f"{self._spec.onnx_filename}"
            )

        self._tokenizer = _load_tokenizer(model_dir, self._max_length)
        self._session = _create_session(onnx_path, self._providers_pref)

        active = self._session.get_providers()
        rss_after = _get_rss_mb()
        logger.info(
            f"Reranker model loaded: {self._spec.name}, providers={active}, "
            f"RSS: {rss_after:.0f}MB (+{rss_after - rss_before:.0f}MB)"
        )

    def unload(self) -> None:
        """Release reranker model from memory."""
        self._session = None
        self._tokenizer = None
        logger.info(f"Reranker model unloaded: {self._spec.name}")

    @property
    def is_loaded(self) -> bool:
        return self._session is not None

    def _score_pairs(self, query: str, documents: Sequence[str]) -> List[float]:
        """Score query-document pairs via the cross-encoder model."""
        # tokenizers applies the model's pair template ([CLS] q [SEP] d [SEP])
        encodings = [self._tokenizer.encode(query, doc) for doc in documents]

        max_len = max(len(e.ids) for e in encodings)
        input_ids = np.zeros((len(encodings), max_len), dtype=np.int64)
        attention_mask = np.zeros((len(encodings), max_len), dtype=np.int64)
        token_type_ids = np.zeros((len(encodings), max_len), dtype=np.int64)

        for i, encoding in enumerate(encodings):
            length = len(encoding.ids)
            input_ids[i, :length] = encoding.ids
            attention_mask[i, :length] = encoding.attention_mask
            if getattr(encoding, "type_ids", None):
                token_type_ids[i, :length] = encoding.type_ids

        feed = _build_feed(self._session, input_ids, attention_mask, token_type_ids)
        outputs = self._session.run(None, feed)
        logits = np.asarray(outputs[0])  # shape: (batch_size, num_labels)

        if logits.ndim == 1:
            return logits.tolist()
        if logits.shape[-1] == 1:
            # Single relevance logit (bge rerankers)
            return logits[:, 0].tolist()
        # Softmax and take positive class probability
        exp_logits = np.exp(logits - np.max(logits, axis=-1, keepdims=True))
        probs = exp_logits / exp_logits.sum(axis=-1, keepdims=True)
        return probs[:, -1].tolist()

    def rerank_batch(
        self, query: str, documents: Sequence[str], return_documents: bool
    ) -> List[RerankResult]:
        """Score all documents and return them best first.

        Equal scores keep their original relative order.
        """
        if not self.is_loaded:
            self.load()
        if not documents:
            return []

        scores = self._score_pairs(query, documents)
        order = sorted(range(len(scores)), key=lambda i: (-scores[i], i))
        return [
            RerankResult(
                document=documents[i] if return_documents else None,
                score=float(scores[i]),
                index=i,
            )
            for i in order
        ]
