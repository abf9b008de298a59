"""
Configuration - Scan options and scanner settings.

All settings are pydantic models so values coming from the CLI, YAML files
or API callers are validated in one place. ``load_settings`` reads a YAML
document such as::

    scan:
      scan_types: ["SQL Injection", "XSS"]
      max_payloads: 3
      inject_location: query
    dispatcher:
      timeout: 10
      verify_ssl: false
    pacing:
      probe_interval: 0.1
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..payloads import VulnerabilityType
from .injection import InjectLocation


class ConfigError(Exception):
    """Raised when configuration cannot be loaded or validated"""
    pass


class ScanOptions(BaseModel):
    """Options of one scan run (all optional)"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    scan_types: Optional[List[VulnerabilityType]] = Field(default=None, alias="scanTypes")
    max_payloads: int = Field(default=5, ge=1, alias="maxPayloads")
    inject_location: InjectLocation = Field(default=InjectLocation.ALL, alias="injectLocation")

    @field_validator("scan_types", mode="before")
    @classmethod
    def _resolve_types(cls, value):
        if value is None:
            return None
        if isinstance(value, (str, VulnerabilityType)):
            value = [value]
        resolved = [VulnerabilityType.from_name(item) for item in value]
        # An empty selection means "all types"
        return resolved or None

    @field_validator("max_payloads", mode="before")
    @classmethod
    def _default_max_payloads(cls, value):
        return 5 if value in (None, "", 0) else value

    @field_validator("inject_location", mode="before")
    @classmethod
    def _lower_location(cls, value):
        if value is None:
            return InjectLocation.ALL
        return value.lower() if isinstance(value, str) else value

    def selects(self, vuln_type: VulnerabilityType) -> bool:
        """Whether this scan runs the given vulnerability type"""
        return self.scan_types is None or vuln_type in self.scan_types

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scan_types": [t.value for t in self.scan_types] if self.scan_types else None,
            "max_payloads": self.max_payloads,
            "inject_location": self.inject_location.value,
        }


class DispatcherSettings(BaseModel):
    """HTTP policy of the request dispatcher"""
    timeout: float = Field(default=15.0, gt=0)
    max_redirects: int = Field(default=5, ge=0)
    user_agent: str = "API-Sentinel/1.0"
    accept: str = "*/*"
    verify_ssl: bool = True
    proxy: Optional[str] = None


class PacingSettings(BaseModel):
    """Probe scheduling: pacing, variant cap and concurrency"""
    probe_interval: float = Field(default=0.05, ge=0)  # seconds between probes
    variant_cap: int = Field(default=2, ge=1)
    max_concurrency: int = Field(default=1, ge=1)
    adaptive: bool = False
    max_interval: float = Field(default=5.0, gt=0)


class ScannerSettings(BaseModel):
    """Root settings document"""
    scan: ScanOptions = Field(default_factory=ScanOptions)
    dispatcher: DispatcherSettings = Field(default_factory=DispatcherSettings)
    pacing: PacingSettings = Field(default_factory=PacingSettings)
    registry_ttl: float = Field(default=3600.0, gt=0)


def load_settings(path: Optional[Union[str, Path]] = None) -> ScannerSettings:
    """
    Load scanner settings from a YAML file.

    Args:
        path: YAML file path (None = defaults)

    Returns:
        Validated ScannerSettings

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    if path is None:
        return ScannerSettings()

    config_path = Path(path)
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")

    try:
        return ScannerSettings.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e
