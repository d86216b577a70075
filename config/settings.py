"""Pydantic Settings — typed configuration with .env auto-loading."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from config.llm_config import DEFAULT_TEMPERATURE, ConnectionConfig


class Settings(BaseSettings):
    """Application configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    service_port: int = 5000
    cors_origins: list[str] = ["*"]
    debug: bool = False

    # ── Scoring endpoint (OpenAI-compatible) ─────────────────
    scoring_base_url: str = ""
    scoring_api_key: str = ""
    scoring_model: str = ""
    scoring_temperature: float = DEFAULT_TEMPERATURE
    # None = wait for the transport; a stalled call stalls the run
    scoring_timeout: float | None = None

    # ── Evaluation runs ──────────────────────────────────────
    # Answer given when a rubric fails and no caller decision is available
    continue_on_failure: bool = True

    # ── Storage ──────────────────────────────────────────────
    rubric_dir: str = "data/rubrics"
    evaluation_store_type: str = "file"  # "file" or "memory"
    evaluation_store_path: str = "data/article_evaluations.json"

    # ── Helpers ───────────────────────────────────────────────

    def get_default_connection(self) -> ConnectionConfig:
        """Build a :class:`ConnectionConfig` from global .env defaults."""
        return ConnectionConfig(
            base_url=self.scoring_base_url,
            api_key=self.scoring_api_key,
            model=self.scoring_model,
            temperature=self.scoring_temperature,
        )


@lru_cache
def get_settings() -> Settings:
    """Singleton accessor for application settings."""
    return Settings()
