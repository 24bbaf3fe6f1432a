"""all-MiniLM-L6-v2 wrapper for local embedding generation."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from shopfront_lite.exceptions import EmbeddingUnavailableError

if TYPE_CHECKING:
    from shopfront_lite.config import Config


logger = logging.getLogger(__name__)

_instances: dict[tuple[str, str, int], Embedder] = {}


class Embedder:
    """Mean-pooled, L2-normalised sentence embeddings from a lazily loaded model.

    The model is expensive to load, so concurrent first callers share one
    in-flight load. A failed load clears the pending task and the next call
    starts over.
    """

    def __init__(self, config: Config) -> None:
        self.config = config
        self._model: Any = None
        self._load_task: asyncio.Task | None = None

    @property
    def available(self) -> bool:
        """Whether the embedding model is loaded and ready."""
        return self._model is not None

    @property
    def loading(self) -> bool:
        return self._load_task is not None and not self._load_task.done()

    @property
    def ndims(self) -> int:
        """Embedding dimension."""
        return self.config.embedding_dim

    def _build_model(self) -> Any:
        from sentence_transformers import SentenceTransformer

        logger.info("Loading embedding model %s", self.config.embedding_model)
        return SentenceTransformer(
            self.config.embedding_model,
            device=self.config.embedding_device,
            truncate_dim=self.config.embedding_dim,
        )

    async def load(self) -> Any:
        """Return the loaded model, joining an in-flight load if one is running."""
        if self._model is not None:
            return self._model

        task = self._load_task
        if task is not None and task.get_loop() is not asyncio.get_running_loop():
            # Left over from a loop that has since closed.
            task = None
        if task is None:
            task = asyncio.get_running_loop().create_task(asyncio.to_thread(self._build_model))
            self._load_task = task

        try:
            model = await asyncio.shield(task)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self._load_task is task:
                self._load_task = None
            logger.warning("Failed to load %s", self.config.embedding_model, exc_info=True)
            msg = f"Embedding model {self.config.embedding_model} unavailable"
            raise EmbeddingUnavailableError(msg) from e

        self._model = model
        return model

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed multiple texts. Vectors are normalised to unit length."""
        model = await self.load()
        try:
            embeddings = await asyncio.to_thread(
                model.encode,
                texts,
                normalize_embeddings=True,
                show_progress_bar=False,
            )
        except Exception as e:
            msg = f"Embedding failed for {len(texts)} text(s)"
            raise EmbeddingUnavailableError(msg) from e
        return embeddings.tolist()  # type: ignore[no-any-return]

    async def embed(self, text: str) -> list[float]:
        """Embed a single text. Convenience wrapper around embed_texts."""
        return (await self.embed_texts([text]))[0]


def get_embedder(config: Config) -> Embedder:
    """Process-wide shared Embedder for a model/device/dimension combination."""
    key = (config.embedding_model, config.embedding_device, config.embedding_dim)
    embedder = _instances.get(key)
    if embedder is None:
        embedder = Embedder(config)
        _instances[key] = embedder
    return embedder
