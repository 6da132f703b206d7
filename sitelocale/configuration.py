"""Layered configuration loader for sitelocale."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError

APP_NAME = "sitelocale"
CONFIG_FILENAME = "config.yaml"


class SiteLocaleConfig(BaseModel):
    """Schema describing all supported configuration options."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    SITELOCALE_DEFAULT_LOCALE: str = Field(
        default="en",
        description="Locale tag of the rendered default documents.",
    )
    SITELOCALE_GENERATED_CLASS_PREFIX: str = Field(
        default="w-",
        min_length=1,
        description="Prefix of class tokens added by the rendering platform.",
    )
    SITELOCALE_IDENTIFIER_ATTRIBUTES: List[str] = Field(
        default_factory=lambda: ["data-w-id"],
        description="Platform identifier attributes ignored when matching markup.",
    )
    SITELOCALE_SITE_NAME: Optional[str] = Field(default=None)
    SITELOCALE_HOST_URL: Optional[str] = Field(
        default=None,
        description="Public URL of the default locale, used for alternate links.",
    )
    SITELOCALE_APPEND_BEFORE_BODY: str = Field(default="")
    SITELOCALE_FIX_RELATIVE_PATHS: bool = Field(
        default=True,
        description="Re-root relative references of documents written to locale folders.",
    )
    SITELOCALE_STATIC_LINKS: bool = Field(
        default=False,
        description="Turn root-relative page links into relative .html links.",
    )
    SITELOCALE_MAX_WORKERS: int = Field(default=1, ge=1)
    SITELOCALE_CONSECUTIVE_ERROR_LIMIT: int = Field(default=3, ge=1)
    SITELOCALE_TOTAL_ERROR_LIMIT: int = Field(default=10, ge=1)
    SITELOCALE_LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING"
    )

    @field_validator("SITELOCALE_IDENTIFIER_ATTRIBUTES", mode="before")
    @classmethod
    def _split_identifier_attributes(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("SITELOCALE_LOG_LEVEL", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("SITELOCALE_SITE_NAME", "SITELOCALE_HOST_URL", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


def discover_config_files(app_dir: Path) -> List[Path]:
    """Return existing YAML files, lowest precedence first."""

    candidates = [
        Path.home() / ".config" / APP_NAME / CONFIG_FILENAME,
        app_dir / CONFIG_FILENAME,
    ]
    return [path for path in candidates if path.is_file()]


def _load_yaml_layers(paths: Sequence[Path]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for path in paths:
        try:
            with path.open("r", encoding="utf-8") as handle:
                parsed = yaml.safe_load(handle)
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigurationError(
                f"Configuration file {path} could not be read: {exc}"
            ) from exc
        if parsed is None:
            continue
        if not isinstance(parsed, Mapping):
            raise ConfigurationError(
                f"Invalid configuration file {path}: expected a mapping at the root."
            )
        result.update({str(key): value for key, value in parsed.items()})
    return result


def _merge_env_sources(
    target: Dict[str, Any],
    *,
    app_dir: Path,
    environ: Mapping[str, str],
) -> None:
    """Merge .env and process environment variables into the target mapping."""

    allowed = set(SiteLocaleConfig.model_fields.keys())

    def merge_values(values: Mapping[str, Optional[str]]) -> None:
        for key, value in sorted(values.items()):
            if value is None or key not in allowed:
                continue
            target[key] = value

    dotenv_path = app_dir / ".env"
    if dotenv_path.exists():
        merge_values(dotenv_values(dotenv_path))

    merge_values(environ)


def load_settings(
    app_dir: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> SiteLocaleConfig:
    """Load and validate every configuration layer without caching."""

    base_dir = app_dir or Path.cwd()
    combined = _load_yaml_layers(discover_config_files(base_dir))
    _merge_env_sources(
        combined,
        app_dir=base_dir,
        environ=os.environ if environ is None else environ,
    )
    try:
        return SiteLocaleConfig.model_validate(combined)
    except ValidationError as exc:
        raise ConfigurationError(_format_validation_errors(exc.errors())) from exc


def _format_validation_errors(entries: Sequence[Mapping[str, Any]]) -> str:
    details: List[str] = []
    for entry in entries:
        location = ".".join(str(part) for part in entry.get("loc") or () if part != "")
        message = str(entry.get("msg") or "Invalid value")
        prefix = f"{location}: " if location else ""
        details.append(f"- {prefix}{message}")
    return "Configuration validation errors detected:\n" + "\n".join(details)


@lru_cache(maxsize=1)
def get_settings(app_dir: Optional[Path] = None) -> SiteLocaleConfig:
    """Return the validated configuration, loaded once per process."""

    return load_settings(app_dir)
