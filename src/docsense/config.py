"""Centralized configuration for docsense using Pydantic Settings."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from docsense.search.ranking import DEFAULT_B, DEFAULT_K1, RankMethod


DEFAULT_ADDRESS = "127.0.0.1:6969"


class Settings(BaseSettings):
    """Strictly typed configuration loaded from ``DOCSENSE_*`` environment variables.

    Command-line flags take precedence; these values only fill the gaps.
    """

    model_config = SettingsConfigDict(
        env_prefix="DOCSENSE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Index settings
    index_path: Path = Field(
        default=Path("index.json"), description="Index file written by `index` and read by `serve`"
    )
    index_workers: int = Field(default=4, ge=1, description="Threads used for extraction and tokenization")
    max_traversal_depth: int = Field(default=64, ge=1, description="Maximum directory depth followed while indexing")

    # Ranking settings
    rank_method: RankMethod = Field(default=RankMethod.TFIDF, description="Relevance model: tfidf or bm25")
    bm25_k1: float = Field(default=DEFAULT_K1, ge=0.0, description="BM25 term frequency saturation")
    bm25_b: float = Field(default=DEFAULT_B, ge=0.0, le=1.0, description="BM25 length normalization strength")
    max_results: int = Field(default=0, ge=0, description="Maximum results per query (0 = unlimited)")

    # Server settings
    host: str = Field(default="127.0.0.1", description="HTTP bind host")
    port: int = Field(default=6969, ge=1, le=65535, description="HTTP bind port")
    uvicorn_limit_concurrency: int = Field(default=100, ge=1, description="Uvicorn concurrency limit")

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")

    @field_validator("rank_method", mode="before")
    @classmethod
    def _parse_rank_method(cls, value: object) -> object:
        if isinstance(value, str):
            return RankMethod.parse(value)
        return value

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


def parse_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` into its parts.

    Raises:
        ValueError: The port is missing or not a valid TCP port.
    """

    host, sep, port_text = address.strip().rpartition(":")
    if not sep or not host:
        raise ValueError(f"Address must look like HOST:PORT, got '{address}'")
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"Invalid port in address '{address}'") from None
    if not 1 <= port <= 65535:
        raise ValueError(f"Port out of range in address '{address}'")
    return host.strip("[]"), port
