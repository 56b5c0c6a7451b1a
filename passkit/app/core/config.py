"""
Centralized configuration for the pass bundling pipeline.

Pydantic v2 settings management: values are read from the environment,
validated once, and frozen for the lifetime of the process.
"""

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# -------------------------------------------------------------------------
# Settings Model
# -------------------------------------------------------------------------

class Settings(BaseSettings):
    """
    Application settings parsed from the environment.

    Fails fast if a value is malformed or out of bounds.
    """

    # ---------------------------------------------------------------------
    # Template content retrieval
    # ---------------------------------------------------------------------

    download_timeout_seconds: Annotated[
        float,
        Field(
            default=10.0,
            gt=0,
            le=10.0,
            description=(
                "Hard ceiling for remote template downloads. "
                "A download never blocks past this bound."
            ),
        ),
    ]

    max_download_size_mb: Annotated[
        int,
        Field(
            default=10,
            ge=1,
            le=50,
            description="OOM protection limit for a single downloaded asset",
        ),
    ]

    # ---------------------------------------------------------------------
    # Staging and packaging
    # ---------------------------------------------------------------------

    staging_dir_prefix: Annotated[
        str,
        Field(
            default="pass",
            min_length=1,
            pattern=r"^[A-Za-z0-9_-]+$",
            description="Prefix for transient staging directories",
        ),
    ]

    archive_compression: Annotated[
        Literal["deflated", "stored"],
        Field(
            default="deflated",
            description="ZIP member storage method",
        ),
    ]

    # ---------------------------------------------------------------------
    # Signing
    # ---------------------------------------------------------------------

    signature_digest_algorithm: Annotated[
        Literal["sha256", "sha384", "sha512"],
        Field(
            default="sha256",
            description="Digest algorithm of the detached manifest signature",
        ),
    ]

    model_config = SettingsConfigDict(
        env_prefix="PASSKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )


# -------------------------------------------------------------------------
# Settings Provider
# -------------------------------------------------------------------------

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Provider for process-wide settings.

    Components accept an explicit ``settings`` argument and fall back
    to this singleton when none is given.
    """
    return Settings()  # singleton within process
