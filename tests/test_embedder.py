"""Tests for the shared embedding provider."""

import asyncio
import time
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from shopfront_lite.exceptions import EmbeddingUnavailableError
from shopfront_lite.search import embedder as embedder_mod
from shopfront_lite.search.embedder import Embedder, get_embedder


def _fake_model(dim: int) -> MagicMock:
    model = MagicMock()

    def encode(texts, **kwargs):
        vecs = np.ones((len(texts), dim))
        return vecs / np.linalg.norm(vecs, axis=1, keepdims=True)

    model.encode.side_effect = encode
    return model


class TestEmbedder:
    async def test_embed_produces_normalised_vectors(self, tmp_config):
        e = Embedder(tmp_config)
        with patch.object(Embedder, "_build_model", return_value=_fake_model(tmp_config.embedding_dim)):
            vec = await e.embed("wool coat")
        assert len(vec) == tmp_config.embedding_dim
        assert np.linalg.norm(vec) == pytest.approx(1.0)
        assert e.available

    async def test_encode_called_with_normalisation(self, tmp_config):
        model = _fake_model(tmp_config.embedding_dim)
        e = Embedder(tmp_config)
        with patch.object(Embedder, "_build_model", return_value=model):
            await e.embed_texts(["a", "b"])
        _, kwargs = model.encode.call_args
        assert kwargs["normalize_embeddings"] is True

    async def test_concurrent_callers_share_one_load(self, tmp_config):
        """Ten simultaneous first calls trigger a single model build."""
        calls = 0
        model = _fake_model(tmp_config.embedding_dim)

        def slow_build(self):
            nonlocal calls
            calls += 1
            time.sleep(0.05)
            return model

        e = Embedder(tmp_config)
        with patch.object(Embedder, "_build_model", slow_build):
            results = await asyncio.gather(*(e.embed(f"q{i}") for i in range(10)))
        assert calls == 1
        assert len(results) == 10

    async def test_failed_load_is_retried(self, tmp_config):
        """A failed load raises and the next call starts a fresh load."""
        model = _fake_model(tmp_config.embedding_dim)
        build = MagicMock(side_effect=[OSError("download failed"), model])
        e = Embedder(tmp_config)
        with patch.object(Embedder, "_build_model", lambda self: build()):
            with pytest.raises(EmbeddingUnavailableError):
                await e.embed("first")
            assert not e.available
            assert not e.loading
            vec = await e.embed("second")
        assert len(vec) == tmp_config.embedding_dim
        assert build.call_count == 2

    async def test_encode_failure_wrapped(self, tmp_config):
        model = MagicMock()
        model.encode.side_effect = RuntimeError("boom")
        e = Embedder(tmp_config)
        with (
            patch.object(Embedder, "_build_model", return_value=model),
            pytest.raises(EmbeddingUnavailableError),
        ):
            await e.embed("x")

    def test_get_embedder_is_shared(self, tmp_config, monkeypatch):
        monkeypatch.setattr(embedder_mod, "_instances", {})
        assert get_embedder(tmp_config) is get_embedder(tmp_config)
