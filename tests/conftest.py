"""Shared fixtures for all test modules."""

import re
import zlib

import numpy as np
import pytest

from shopfront_lite.catalog.defaults import DEFAULT_CATALOG
from shopfront_lite.config import Config
from shopfront_lite.exceptions import EmbeddingUnavailableError
from shopfront_lite.logging.logger import AuditLogger
from shopfront_lite.storage.cart_repo import CartRepository, open_db
from shopfront_lite.storage.models import Product
from shopfront_lite.storage.sqlite_store import SQLiteStore


@pytest.fixture
def tmp_config(tmp_path):
    """Config pointing to a temp directory, fresh DB per test."""
    config = Config(base_dir=tmp_path / ".shopfront", search_debounce_s=0.01)
    config.ensure_dirs()
    return config


@pytest.fixture
def store(tmp_config):
    """SQLiteStore with migrated DB."""
    s = SQLiteStore(tmp_config.db_path)
    yield s
    s.close()


@pytest.fixture
def audit(tmp_config, store):
    """AuditLogger writing to temp dir and the test store."""
    return AuditLogger(tmp_config.log_dir, store)


@pytest.fixture
async def async_db(tmp_config):
    """aiosqlite connection on a migrated schema."""
    db = await open_db(tmp_config.db_path)
    yield db
    await db.close()


@pytest.fixture
def cart_repo(async_db):
    return CartRepository(async_db)


# -----------------------------------------------------------------------
# Catalog fixtures
# -----------------------------------------------------------------------


@pytest.fixture
def catalog():
    """The twelve-product seed catalog."""
    return list(DEFAULT_CATALOG)


@pytest.fixture
def abc_products():
    """Three-product catalog: A (X, 100), B (Y, 50), C (X, 200)."""
    return [
        Product(id="A", name="Alpha", price=100, category="X"),
        Product(id="B", name="Beta", price=50, category="Y"),
        Product(id="C", name="Gamma", price=200, category="X"),
    ]


# -----------------------------------------------------------------------
# Search fixtures
# -----------------------------------------------------------------------

_WORD_RE = re.compile(r"\w+")


def bag_of_words(text: str, dim: int) -> list[float]:
    """Deterministic hashed bag-of-words vector, L2-normalised."""
    vec = np.zeros(dim)
    for word in _WORD_RE.findall(text.lower()):
        vec[zlib.crc32(word.encode()) % dim] += 1.0
    norm = np.linalg.norm(vec)
    if norm:
        vec /= norm
    return vec.tolist()


class FakeEmbedder:
    """Stand-in for Embedder: no model, word-overlap similarity."""

    def __init__(self, dim: int = 384) -> None:
        self.dim = dim
        self.available = True
        self.fail = False
        self.calls = 0

    async def embed_texts(self, texts):
        if self.fail:
            self.available = False
            raise EmbeddingUnavailableError("model offline")  # noqa: EM101
        self.calls += len(texts)
        return [bag_of_words(t, self.dim) for t in texts]

    async def embed(self, text):
        return (await self.embed_texts([text]))[0]


@pytest.fixture
def fake_embedder(tmp_config):
    return FakeEmbedder(tmp_config.embedding_dim)
