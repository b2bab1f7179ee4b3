"""Configuration file loading for drivemirror."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .exceptions import MirrorConfigError
from .sync.modes import DEFAULT_UPDATE_ACTION, UpdateAction
from .sync.tasks import MirrorTask, load_tasks
from .utils import DEFAULT_MAX_RETRIES, DEFAULT_PAGE_SIZE

CONFIG_ENV_VAR = "DRIVEMIRROR_CONFIG"
DEFAULT_CONFIG_NAME = "drivemirror.json"

# Environment variables that override credentials from the file
CREDENTIAL_ENV_VARS = {
    "tenant_id": "DRIVEMIRROR_TENANT_ID",
    "client_id": "DRIVEMIRROR_CLIENT_ID",
    "client_secret": "DRIVEMIRROR_CLIENT_SECRET",
}


def get_config_path(path: Optional[str] = None) -> Path:
    """Config file location: explicit path, then $DRIVEMIRROR_CONFIG, then
    ``drivemirror.json`` in the working directory."""
    if path:
        return Path(path).expanduser()
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return Path.cwd() / DEFAULT_CONFIG_NAME


@dataclass
class MirrorConfig:
    """Settings and tasks read from the JSON configuration file."""

    path: Path
    """File the configuration was read from"""

    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None

    update_action: UpdateAction = DEFAULT_UPDATE_ACTION
    """Global update action, used by tasks that set none"""

    log_file: Optional[Path] = None
    """Run log (appended to)"""

    manifest_file: Optional[Path] = None
    """Rename manifest CSV (appended to)"""

    max_retries: int = DEFAULT_MAX_RETRIES
    page_size: int = DEFAULT_PAGE_SIZE

    tasks: list[MirrorTask] = field(default_factory=list)

    @classmethod
    def load(cls, path: Path) -> "MirrorConfig":
        """Read and check a configuration file.

        Args:
            path: JSON configuration file

        Returns:
            MirrorConfig instance

        Raises:
            MirrorConfigError: If the file is missing, is not valid JSON or
                has invalid global settings
        """
        if not path.is_file():
            raise MirrorConfigError(f"Configuration file not found: {path}")
        try:
            with open(path, encoding="utf-8-sig") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise MirrorConfigError(f"Cannot read configuration {path}: {e}") from e
        if not isinstance(data, dict):
            raise MirrorConfigError("Configuration root must be an object")
        return cls.from_dict(data, path)

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: Path) -> "MirrorConfig":
        """Build the config from parsed JSON, applying environment overrides."""
        base_dir = path.parent

        def resolve(key: str, default: Optional[str]) -> Optional[Path]:
            value = data.get(key, default)
            if not value:
                return None
            resolved = Path(value).expanduser()
            return resolved if resolved.is_absolute() else base_dir / resolved

        try:
            update_action = UpdateAction.from_string(
                data.get("UpdateAction") or DEFAULT_UPDATE_ACTION.value
            )
        except ValueError as e:
            raise MirrorConfigError(str(e)) from e

        try:
            max_retries = int(data.get("MaxRetries", DEFAULT_MAX_RETRIES))
            page_size = int(data.get("PageSize", DEFAULT_PAGE_SIZE))
        except (TypeError, ValueError) as e:
            raise MirrorConfigError(f"Invalid numeric setting: {e}") from e
        if max_retries < 1 or page_size < 1:
            raise MirrorConfigError("MaxRetries and PageSize must be at least 1")

        config = cls(
            path=path,
            tenant_id=data.get("TenantId"),
            client_id=data.get("ClientId"),
            client_secret=data.get("ClientSecret"),
            update_action=update_action,
            log_file=resolve("LogFile", "logs/drivemirror.log"),
            manifest_file=resolve("ManifestFile", "logs/rename_manifest.csv"),
            max_retries=max_retries,
            page_size=page_size,
            tasks=load_tasks(data.get("Tasks"), base_dir),
        )
        for attr, env_var in CREDENTIAL_ENV_VARS.items():
            value = os.environ.get(env_var)
            if value:
                setattr(config, attr, value)
        return config
