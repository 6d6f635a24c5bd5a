# autoadd/config.py
"""
Engine configuration via pydantic-settings.

Values come from AUTOADD_* environment variables or a local .env file.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Settings shared by the adapters, providers and the CLI."""

    model_config = SettingsConfigDict(
        env_prefix="AUTOADD_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = "info"
    log_json: bool = False

    # Line property the storefront writes on lines added by the engine
    auto_add_property: str = "_auto_added"

    variant_gid_prefix: str = "gid://shopify/ProductVariant/"
    product_gid_prefix: str = "gid://shopify/Product/"

    rules_path: Optional[str] = None
    collection_index_path: Optional[str] = None

    # Storefront callers poll on this interval; the engine itself never sleeps.
    poll_interval_seconds: float = Field(default=3.0, gt=0)


@lru_cache(maxsize=1)
def get_settings() -> EngineSettings:
    return EngineSettings()
