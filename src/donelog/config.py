"""
Sync configuration

Stored in the data directory as config.yaml under a 'sync' section:

    sync:
      endpoint: https://xyz.supabase.co
      credential: eyJhbGciOi...
      auto_sync: true
      interval_minutes: 15

DONELOG_ENDPOINT and DONELOG_CREDENTIAL override the file.
"""

import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional, Dict, Any

import yaml

from .remote_store import DEFAULT_TABLE, DEFAULT_TIMEOUT

CONFIG_FILENAME = "config.yaml"


@dataclass
class SyncConfig:
    """
    Remote sync settings.

    auto_sync and interval_minutes only drive the scheduler;
    interval_minutes == 0 means one pass at startup.
    """
    endpoint: str = ""
    credential: str = ""
    auto_sync: bool = False
    interval_minutes: int = 0
    table: str = DEFAULT_TABLE
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        self.endpoint = (self.endpoint or "").strip()
        self.credential = (self.credential or "").strip()
        if self.interval_minutes < 0:
            raise ValueError(f"interval_minutes must be >= 0, got {self.interval_minutes}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")

    @property
    def is_configured(self) -> bool:
        return bool(self.endpoint and self.credential)

    @property
    def connection_key(self) -> tuple:
        return (self.endpoint, self.credential)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SyncConfig":
        """Build from the 'sync' section of config.yaml"""
        data = data or {}
        return cls(
            endpoint=str(data.get("endpoint") or ""),
            credential=str(data.get("credential") or ""),
            auto_sync=_as_bool(data.get("auto_sync", False)),
            interval_minutes=int(data.get("interval_minutes") or 0),
            table=str(data.get("table") or DEFAULT_TABLE),
            timeout=float(data.get("timeout") or DEFAULT_TIMEOUT),
        )


def _as_bool(value: Any) -> bool:
    """Accept YAML booleans as well as strings written by 'config set'"""
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def read_config_file(base_path: Path) -> Dict[str, Any]:
    """Load config.yaml as a dict (empty if missing)"""
    config_path = Path(base_path) / CONFIG_FILENAME
    if not config_path.exists():
        return {}
    return yaml.safe_load(config_path.read_text()) or {}


def write_config_file(base_path: Path, config_data: Dict[str, Any]) -> Path:
    """Write config.yaml"""
    config_path = Path(base_path) / CONFIG_FILENAME
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(yaml.dump(config_data, default_flow_style=False, sort_keys=False))
    return config_path


def load_config(base_path: Path) -> SyncConfig:
    """
    Load SyncConfig from config.yaml, applying environment overrides.

    Args:
        base_path: Data directory holding config.yaml

    Returns:
        SyncConfig (unconfigured if neither file nor env provide credentials)
    """
    sync_data = dict(read_config_file(base_path).get("sync") or {})

    endpoint = os.getenv("DONELOG_ENDPOINT")
    credential = os.getenv("DONELOG_CREDENTIAL")
    if endpoint:
        sync_data["endpoint"] = endpoint
    if credential:
        sync_data["credential"] = credential

    return SyncConfig.from_dict(sync_data)


def save_config(base_path: Path, config: SyncConfig) -> Path:
    """Write SyncConfig into the 'sync' section, keeping other sections"""
    config_data = read_config_file(base_path)
    config_data["sync"] = config.to_dict()
    return write_config_file(base_path, config_data)
