"""
dashnotify Configuration — Validate notification service options.

Options arrive as a mapping using the wire keys (``apiUrl``, ``apiKey``,
``insecureSkipVerify``, ``gcpSAKey``, ``gcpSAKeyFile``), either from the dispatch layer
directly or from a YAML file.

Usage:
    from dashnotify.engine.config import GrafanaOptions, load_options
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from dashnotify.engine.errors import ConfigurationError


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------

class GrafanaOptions(BaseModel):
    """Options for the Grafana annotation service. Immutable once built."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    api_url: str = Field(alias="apiUrl")
    api_key: str = Field(default="", alias="apiKey")
    insecure_skip_verify: bool = Field(default=False, alias="insecureSkipVerify")
    # Inline JSON key material only; a key on disk goes in gcp_sa_key_file
    gcp_sa_key: str = Field(default="", alias="gcpSAKey")
    gcp_sa_key_file: str = Field(default="", alias="gcpSAKeyFile")

    # Identity-token audience; falls back to the scheme + host of api_url
    audience: Optional[str] = None
    timeout: Optional[float] = None

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError(f"timeout must be positive, got {v}")
        return v

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "GrafanaOptions":
        """Build options from a wire-keyed mapping, raising ConfigurationError."""
        try:
            return cls.model_validate(dict(raw))
        except ValidationError as e:
            fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
            raise ConfigurationError(
                f"Invalid grafana options: {e.error_count()} error(s) in {', '.join(fields)}",
                service="grafana",
                field=fields[0] if fields else None,
            ) from e


# ---------------------------------------------------------------------------
# Config Loading Functions
# ---------------------------------------------------------------------------

def load_raw_options(config_path: str, section: Optional[str] = "grafana") -> Dict[str, Any]:
    """
    Read a YAML options file.

    The file may either hold the options at top level or nest them under
    ``section`` (``grafana:`` by default).

    Raises:
        FileNotFoundError if the file does not exist.
        ConfigurationError if the file is not a mapping.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Options file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"Options file must contain a mapping, got {type(raw).__name__}",
            field=str(path),
        )

    if section and isinstance(raw.get(section), dict):
        return raw[section]
    return raw


def load_options(config_path: str, section: Optional[str] = "grafana") -> GrafanaOptions:
    """Load and validate GrafanaOptions from a YAML file."""
    return GrafanaOptions.from_mapping(load_raw_options(config_path, section))
