"""Environment-driven settings for the server, CLI and widget."""

import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from invocursor.models.api import DEFAULT_CONFIG_NAME


class Settings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    database_url: str = "sqlite:///./invocursor.sqlite3"
    configs_dir: str = "./configs"
    default_config: str = DEFAULT_CONFIG_NAME
    admin_secret: Optional[str] = None
    allowed_origins: list[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3050

    @classmethod
    def from_env(cls) -> "Settings":
        """Builds settings from environment variables, falling back to defaults."""
        env = os.environ
        origins = env.get("ALLOWED_ORIGINS", "*")
        return cls(
            openai_api_key=env.get("OPENAI_API_KEY") or None,
            openai_model=env.get("OPENAI_MODEL", "gpt-4o-mini"),
            database_url=env.get("DATABASE_URL", "sqlite:///./invocursor.sqlite3"),
            configs_dir=env.get("INVOCURSOR_CONFIGS_DIR", "./configs"),
            default_config=env.get("INVOCURSOR_DEFAULT_CONFIG", DEFAULT_CONFIG_NAME),
            admin_secret=env.get("INVOCURSOR_ADMIN_SECRET") or None,
            allowed_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_level=env.get("LOG_LEVEL", "INFO"),
            host=env.get("HOST", "0.0.0.0"),
            port=int(env.get("PORT", "3050")),
        )
