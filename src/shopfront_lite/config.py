"""Configuration management for shopfront-lite."""

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class Config:
    """Central configuration with path properties, search tuning and pricing constants."""

    base_dir: Path = field(default_factory=lambda: Path.home() / ".shopfront")

    # Embedding
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_dim: int = 384
    embedding_device: str = "cpu"

    # Search
    remote_match_threshold: float = 0.3
    local_match_threshold: float = 0.35
    search_limit_default: int = 5
    search_limit_max: int = 20
    search_debounce_s: float = 0.3

    # Pricing
    bundle_discount: int = 50
    bundle_min_lines: int = 2

    # External collaborators (PostgREST-style managed datastore + payment sessions)
    datastore_url: str | None = None
    datastore_key: str | None = None
    match_function: str = "match_products"
    payment_session_url: str | None = None
    http_timeout_s: float = 10.0

    @classmethod
    def from_env(cls, **overrides) -> "Config":
        """Build a Config, filling endpoint settings from SHOPFRONT_* variables."""
        env = {
            "datastore_url": os.environ.get("SHOPFRONT_DATASTORE_URL"),
            "datastore_key": os.environ.get("SHOPFRONT_DATASTORE_KEY"),
            "payment_session_url": os.environ.get("SHOPFRONT_PAYMENT_SESSION_URL"),
        }
        if base := os.environ.get("SHOPFRONT_HOME"):
            env["base_dir"] = Path(base)
        values = {k: v for k, v in env.items() if v is not None}
        values.update(overrides)
        return cls(**values)

    @property
    def db_path(self) -> Path:
        return self.base_dir / "shopfront.db"

    @property
    def lance_path(self) -> Path:
        return self.base_dir / "lance"

    @property
    def socket_path(self) -> Path:
        return self.base_dir / "shopfront.sock"

    @property
    def log_dir(self) -> Path:
        return self.base_dir / "logs"

    @property
    def remote_enabled(self) -> bool:
        return bool(self.datastore_url and self.datastore_key)

    def ensure_dirs(self) -> None:
        """Create directory tree if it doesn't exist."""
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)
