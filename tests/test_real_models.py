"""End-to-end checks against the real hub models.

These download several hundred MB on first run and are skipped unless
GEMMA_EMBED_RUN_SLOW=1 is set.
"""
import math

import pytest

from gemma_embed import Reranker, TextEmbedder
from gemma_embed.exceptions import ModelLoadError
from gemma_embed.services.embedder import TextEmbedder as CoreTextEmbedder

pytestmark = pytest.mark.slow


@pytest.fixture(scope="module")
def quantized_embedder():
    return TextEmbedder.new_quantized()


@pytest.fixture(scope="module")
def real_reranker():
    return Reranker()


def test_embeddings_are_768_dim_and_finite(quantized_embedder):
    vectors = quantized_embedder.embed(["hello world", "hola mundo"])
    assert len(vectors) == 2
    for vec in vectors:
        assert len(vec) == 768
        assert all(math.isfinite(x) for x in vec)
        assert math.sqrt(sum(x * x for x in vec)) == pytest.approx(1.0, abs=1e-3)
    assert vectors[0] != vectors[1]
    assert quantized_embedder.dimension() == 768


@pytest.fixture(scope="module")
def default_embedder():
    return TextEmbedder()


def test_default_model_embeddings_are_768_dim_and_finite(default_embedder):
    vectors = default_embedder.embed(["hello world", "hola mundo"])
    assert len(vectors) == 2
    for vec in vectors:
        assert len(vec) == 768
        assert all(math.isfinite(x) for x in vec)
    assert vectors[0] != vectors[1]
    assert default_embedder.dimension() == 768


def test_embed_one_matches_batch(quantized_embedder):
    single = quantized_embedder.embed_one("kya haal hai")
    batch = quantized_embedder.embed(["kya haal hai"])[0]
    assert single == pytest.approx(batch, abs=1e-5)


def test_pizza_document_ranks_first(real_reranker):
    results = real_reranker.rerank("best pizza", ["I love pizza", "The weather is nice"])
    assert [index for _, _, index in results][0] == 0
    assert results[0][0] == "I love pizza"
    assert results[0][1] > results[1][1]


def test_unknown_model_fails_to_load():
    with pytest.raises(ModelLoadError):
        CoreTextEmbedder.with_model("acme/definitely-not-a-model")
