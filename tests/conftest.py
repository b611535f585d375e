"""Common test fixtures for gemma-embed."""

import os

import pytest

from gemma_embed.config import GemmaEmbedConfig
from gemma_embed.observability import metrics
from gemma_embed.services.embedder import TextEmbedder
from gemma_embed.services.model_catalog import (
    DEFAULT_EMBEDDING_MODEL,
    DEFAULT_RERANKER_MODEL,
    get_embedding_model,
    get_reranker_model,
)
from gemma_embed.services.reranker import TextReranker
from tests.fakes import BackendFactory, FakeEmbeddingBackend, FakeRerankBackend


def pytest_collection_modifyitems(config, items):
    """Skip real-model tests unless explicitly requested."""
    if os.getenv("GEMMA_EMBED_RUN_SLOW", "").lower() in ("1", "true", "yes"):
        return
    skip_slow = pytest.mark.skip(reason="set GEMMA_EMBED_RUN_SLOW=1 to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def test_config(tmp_path):
    """Config isolated from the environment, caching under tmp_path."""
    return GemmaEmbedConfig(
        cache_dir=tmp_path / "models",
        onnx_providers="cpu",
        show_download_progress=False,
        embedding_model=DEFAULT_EMBEDDING_MODEL,
        quantization=None,
        reranker_model=DEFAULT_RERANKER_MODEL,
        embedding_max_tokens=2048,
        reranker_max_tokens=512,
        log_level="INFO",
    )


@pytest.fixture
def embedding_spec():
    return get_embedding_model(DEFAULT_EMBEDDING_MODEL)


@pytest.fixture
def fake_embedding_backend(embedding_spec):
    backend = FakeEmbeddingBackend(dim=embedding_spec.dimension)
    backend.load()
    return backend


@pytest.fixture
def embedder(fake_embedding_backend, embedding_spec):
    """TextEmbedder over a deterministic fake backend."""
    return TextEmbedder(fake_embedding_backend, embedding_spec)


@pytest.fixture
def fake_rerank_backend():
    backend = FakeRerankBackend()
    backend.load()
    return backend


@pytest.fixture
def reranker(fake_rerank_backend):
    """TextReranker over a keyword-overlap fake backend."""
    return TextReranker(fake_rerank_backend, get_reranker_model(DEFAULT_RERANKER_MODEL))


@pytest.fixture
def fake_embedding_factory(monkeypatch):
    """Replace OnnxEmbeddingBackend so named constructors load fakes."""
    factory = BackendFactory(lambda spec: FakeEmbeddingBackend(dim=spec.dimension))
    monkeypatch.setattr("gemma_embed.services.embedder.OnnxEmbeddingBackend", factory)
    return factory


@pytest.fixture
def fake_rerank_factory(monkeypatch):
    """Replace OnnxRerankBackend so TextReranker.new() loads a fake."""
    factory = BackendFactory(lambda spec: FakeRerankBackend())
    monkeypatch.setattr("gemma_embed.services.reranker.OnnxRerankBackend", factory)
    return factory
