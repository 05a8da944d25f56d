from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from ergoquipt_reports.query.range import DEFAULT_TIMEZONE_OFFSET, TIMEZONE_OPTIONS


class PathsConfig(BaseModel):
    downloads_dir: Path = Field(default=Path("downloads"))
    logs_dir: Path = Field(default=Path("logs"))
    reports_dir: Path = Field(default=Path("reports"))
    session_file: Path = Field(default=Path(".ergoquipt/session.json"))


class ApiConfig(BaseModel):
    # Origin only; versioned prefixes (/api/v1, /api/v2) are added by the client
    base_url: str = Field(default="http://localhost:8000")

    # Requests without a response after this many seconds surface as network failures
    timeout_s: float = Field(default=30.0, gt=0)

    page_limit: int = Field(default=50, ge=1)


class Settings(BaseModel):
    """Application settings.

    TZ conventions:
    - all API range bounds are UTC instants
    - default_timezone_offset is the operator-facing offset (hours east of UTC)
      used when a date facet is entered without an explicit offset; it must be
      one of TIMEZONE_OPTIONS.

    Token handling:
    - the bearer token lives in the session store (paths.session_file), never here.
    """

    default_timezone_offset: int = Field(default=DEFAULT_TIMEZONE_OFFSET)

    api: ApiConfig = Field(default_factory=ApiConfig)

    paths: PathsConfig = Field(default_factory=PathsConfig)

    @field_validator("default_timezone_offset")
    @classmethod
    def _known_offset(cls, value: int) -> int:
        if value not in TIMEZONE_OPTIONS:
            raise ValueError(f"timezone offset must be one of {sorted(TIMEZONE_OPTIONS)}")
        return value


def load_settings(config_path: Optional[Path]) -> Settings:
    """Load settings from .env + optional YAML.

    Precedence:
      1) defaults
      2) .env (ERGOQUIPT_API_URL / ERGOQUIPT_TIMEOUT_S / ERGOQUIPT_TZ_OFFSET)
      3) YAML file (if provided)

    Notes:
      - Only the project's local `.env` is loaded, so runs do not pick up
        unrelated `.env` files from parent directories.
    """

    load_dotenv(dotenv_path=Path(".env"), override=False)

    base = Settings()

    # P0: defaults
    merged: Dict[str, Any] = base.model_dump(mode="python")

    # P1: .env overrides
    env_api_url = _getenv("ERGOQUIPT_API_URL")
    env_timeout = _getenv("ERGOQUIPT_TIMEOUT_S")
    env_tz_offset = _getenv("ERGOQUIPT_TZ_OFFSET")

    if env_api_url is not None:
        merged["api"]["base_url"] = env_api_url
    if env_timeout is not None:
        merged["api"]["timeout_s"] = env_timeout
    if env_tz_offset is not None:
        merged["default_timezone_offset"] = env_tz_offset

    if config_path is not None:
        cfg = _load_yaml(config_path)
        merged = _deep_merge(merged, cfg)

    try:
        return Settings.model_validate(merged)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc


def _getenv(key: str) -> Optional[str]:
    import os

    value = os.getenv(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(str(path))
    raw = path.read_text(encoding="utf-8")
    parsed = yaml.safe_load(raw) or {}
    if not isinstance(parsed, dict):
        raise ValueError("YAML config must be a mapping/object at the top level")
    return parsed


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if (
            k in out
            and isinstance(out[k], dict)
            and isinstance(v, dict)
        ):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out
