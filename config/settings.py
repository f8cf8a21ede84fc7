"""
Production-grade configuration with pydantic-settings.
Provider credentials and cache TTL overrides are read from the environment
(or a .env file) once, at adapter construction.
"""

from typing import Optional, Literal
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from loguru import logger


# Prefixes used in CACHE_TTL_<PREFIX>_MS / _NODATA_MS / _RATELIMIT_MS
TTL_PREFIXES = (
    "ALPHA_VANTAGE",
    "FRED",
    "WORLD_BANK",
    "BLS",
    "CENSUS",
    "OECD",
    "IMF",
    "NASDAQ",
)


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # Core runtime settings
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO", description="Logging level")
    CACHE_DIR: str = Field(default=".cache_data", description="Root directory of the persistent cache tier")
    HTTP_TIMEOUT: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds")
    HTTP_MAX_RETRIES: int = Field(default=3, ge=0, description="Retries on 5xx and connection errors")

    # Provider credentials
    ALPHA_VANTAGE_API_KEY: Optional[str] = Field(default=None, description="Alpha Vantage API key")
    FRED_API_KEY: Optional[str] = Field(default=None, description="FRED API key")
    BLS_API_KEY: Optional[str] = Field(default=None, description="BLS registration key (optional)")
    CENSUS_API_KEY: Optional[str] = Field(default=None, description="Census API key (optional)")
    NASDAQ_DATA_LINK_API_KEY: Optional[str] = Field(default=None, description="Nasdaq Data Link API key")

    # TTL overrides, kept as raw strings so a bad value degrades to the default
    CACHE_TTL_ALPHA_VANTAGE_MS: Optional[str] = None
    CACHE_TTL_ALPHA_VANTAGE_NODATA_MS: Optional[str] = None
    CACHE_TTL_ALPHA_VANTAGE_RATELIMIT_MS: Optional[str] = None
    CACHE_TTL_FRED_MS: Optional[str] = None
    CACHE_TTL_FRED_NODATA_MS: Optional[str] = None
    CACHE_TTL_FRED_RATELIMIT_MS: Optional[str] = None
    CACHE_TTL_WORLD_BANK_MS: Optional[str] = None
    CACHE_TTL_WORLD_BANK_NODATA_MS: Optional[str] = None
    CACHE_TTL_WORLD_BANK_RATELIMIT_MS: Optional[str] = None
    CACHE_TTL_BLS_MS: Optional[str] = None
    CACHE_TTL_BLS_NODATA_MS: Optional[str] = None
    CACHE_TTL_BLS_RATELIMIT_MS: Optional[str] = None
    CACHE_TTL_CENSUS_MS: Optional[str] = None
    CACHE_TTL_CENSUS_NODATA_MS: Optional[str] = None
    CACHE_TTL_CENSUS_RATELIMIT_MS: Optional[str] = None
    CACHE_TTL_OECD_MS: Optional[str] = None
    CACHE_TTL_OECD_NODATA_MS: Optional[str] = None
    CACHE_TTL_OECD_RATELIMIT_MS: Optional[str] = None
    CACHE_TTL_IMF_MS: Optional[str] = None
    CACHE_TTL_IMF_NODATA_MS: Optional[str] = None
    CACHE_TTL_IMF_RATELIMIT_MS: Optional[str] = None
    CACHE_TTL_NASDAQ_MS: Optional[str] = None
    CACHE_TTL_NASDAQ_NODATA_MS: Optional[str] = None
    CACHE_TTL_NASDAQ_RATELIMIT_MS: Optional[str] = None

    def masked_dict(self) -> dict:
        """
        Return configuration dictionary with secrets masked.
        Shows only last 4 characters of API keys.
        """
        result = {}
        for field_name, field_value in self.model_dump().items():
            if field_value is None:
                result[field_name] = None
            elif "KEY" in field_name.upper():
                str_value = str(field_value)
                if len(str_value) > 4:
                    result[field_name] = f"***{str_value[-4:]}"
                else:
                    result[field_name] = "***"
            else:
                result[field_name] = field_value
        return result

    def api_key(self, field_name: str) -> Optional[str]:
        """Return a stripped credential, or None when unset or blank."""
        value = getattr(self, field_name, None)
        if value is None:
            return None
        value = value.strip()
        return value or None

    def ttl_ms(self, field_name: str, default: int) -> int:
        """
        Resolve a TTL override in milliseconds.

        An unset variable yields the default silently. An unparsable or
        non-positive value is logged and the default is used instead; this
        is never fatal.
        """
        raw = getattr(self, field_name, None)
        if raw is None or not raw.strip():
            return default
        try:
            value = int(raw.strip())
        except ValueError:
            logger.warning(f"{field_name}={raw!r} is not a valid integer, using default {default}ms")
            return default
        if value <= 0:
            logger.warning(f"{field_name}={value} must be positive, using default {default}ms")
            return default
        return value

    def configured_providers(self) -> list[str]:
        """Names of the credential fields that are set."""
        return [
            name for name in (
                "ALPHA_VANTAGE_API_KEY",
                "FRED_API_KEY",
                "BLS_API_KEY",
                "CENSUS_API_KEY",
                "NASDAQ_DATA_LINK_API_KEY",
            )
            if self.api_key(name)
        ]
