"""Connection parameters for the OpenAI-compatible scoring endpoint.

ConnectionConfig is a standalone Pydantic model that can be:
- built from Settings as the global default,
- sent per-request by API callers,
- merged so per-request values win over the defaults.

Priority chain (low → high):
    .env global defaults  →  per-request connection
"""

from __future__ import annotations

from pydantic import BaseModel, Field

DEFAULT_TEMPERATURE = 0.7


class ConnectionConfig(BaseModel):
    """Where and how to reach the chat-completion endpoint."""

    base_url: str = Field(default="", description="Endpoint root, e.g. https://api.openai.com/v1")
    api_key: str = Field(default="", description="Sent as a Bearer token")
    model: str = Field(default="", description="Model identifier passed through verbatim")
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def is_complete(self) -> bool:
        """True when base URL, key and model are all set."""
        return bool(self.base_url.strip() and self.api_key.strip() and self.model.strip())

    def missing_fields(self) -> list[str]:
        return [
            name
            for name in ("base_url", "api_key", "model")
            if not getattr(self, name).strip()
        ]

    def merge(self, overrides: ConnectionConfig | None) -> ConnectionConfig:
        """Return a new config: *self* as base, *overrides* wins on non-empty fields."""
        if overrides is None:
            return self.model_copy()
        base = self.model_dump()
        over = {
            key: value
            for key, value in overrides.model_dump(exclude_unset=True).items()
            if value not in ("", None)
        }
        base.update(over)
        return ConnectionConfig(**base)

    def endpoint(self, path: str) -> str:
        """Join *path* onto the base URL without doubling slashes."""
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
