"""Configuration management for clusterbar.

Settings come from a JSON config file (clusterbar.json) or, failing that,
from ``CLUSTERBAR_*`` environment variables.

Environment variable CLUSTERBAR_CONFIG can point to a custom JSON config file.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)


class ClusterConfig(BaseModel):
    """Configuration for a single Slurm cluster.

    This model contains all settings needed to connect to the cluster's login
    node and to poll its scheduler.
    """

    # Cluster identification
    name: str = Field(default="default", description="Cluster name/identifier")

    # SSH Connection Settings
    ssh_host: str = Field(description="Login node hostname")
    ssh_port: int = Field(default=22, description="SSH port")
    ssh_user: str = Field(description="SSH username")
    ssh_key_path: Optional[str] = Field(default=None, description="Path to SSH private key file")
    ssh_password: Optional[str] = Field(default=None, description="SSH password (for key passphrase or password auth)")
    ssh_known_hosts: Optional[str] = Field(default=None, description="Path to known_hosts file")
    command_timeout: int = Field(default=60, description="Command timeout in seconds")

    # Polling Settings
    refresh_interval: float = Field(default=60.0, ge=0, description="Seconds between refreshes (0 disables polling)")
    history_window: str = Field(default="now-7days", description="sacct start time for job history")
    history_limit: int = Field(default=100, gt=0, description="Maximum accounting rows fetched")

    # Job View Settings
    recent_limit: int = Field(default=5, gt=0, description="Number of finished jobs shown as recent")

    @model_validator(mode="after")
    def check_history_window(self) -> "ClusterConfig":
        """Reject history windows that would break the sacct command line."""
        if not self.history_window or any(c.isspace() for c in self.history_window):
            raise ValueError(
                f"Cluster '{self.name}': history_window must be a single sacct time token, "
                f"got '{self.history_window}'"
            )
        return self

    @property
    def ssh_key_path_resolved(self) -> Optional[Path]:
        """Get resolved SSH key path."""
        if self.ssh_key_path:
            return Path(self.ssh_key_path).expanduser()
        return None


def load_config(config_path: Optional[str] = None) -> ClusterConfig:
    """Load cluster configuration from a JSON file.

    Args:
        config_path: Path to the JSON config file. If None, looks for:
            1. CLUSTERBAR_CONFIG environment variable
            2. ./clusterbar.json
            3. ~/.clusterbar/clusterbar.json

    Returns:
        ClusterConfig instance.

    Raises:
        FileNotFoundError: If config file not found.
        ValueError: If config file is invalid.
    """
    if config_path is None:
        config_path = os.environ.get("CLUSTERBAR_CONFIG")

    if config_path is None:
        candidates = [
            Path("./clusterbar.json"),
            Path("~/.clusterbar/clusterbar.json").expanduser(),
        ]

        for candidate in candidates:
            if candidate.exists():
                config_path = str(candidate)
                break

    if config_path is None:
        raise FileNotFoundError(
            "No clusterbar.json config file found. Create one at ./clusterbar.json or "
            "~/.clusterbar/clusterbar.json, or set CLUSTERBAR_CONFIG environment variable."
        )

    config_file = Path(config_path).expanduser()

    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_file}")

    logger.info(f"Loading cluster configuration from {config_file}")

    with open(config_file, "r") as f:
        data = json.load(f)

    return ClusterConfig(**data)


# Environment variable -> ClusterConfig field
_ENV_FIELDS = {
    "CLUSTERBAR_NAME": "name",
    "CLUSTERBAR_SSH_HOST": "ssh_host",
    "CLUSTERBAR_SSH_PORT": "ssh_port",
    "CLUSTERBAR_SSH_USER": "ssh_user",
    "CLUSTERBAR_SSH_KEY_PATH": "ssh_key_path",
    "CLUSTERBAR_SSH_PASSWORD": "ssh_password",
    "CLUSTERBAR_SSH_KNOWN_HOSTS": "ssh_known_hosts",
    "CLUSTERBAR_COMMAND_TIMEOUT": "command_timeout",
    "CLUSTERBAR_REFRESH_INTERVAL": "refresh_interval",
    "CLUSTERBAR_HISTORY_WINDOW": "history_window",
    "CLUSTERBAR_HISTORY_LIMIT": "history_limit",
    "CLUSTERBAR_RECENT_LIMIT": "recent_limit",
}


def settings_from_env() -> ClusterConfig:
    """Build a ClusterConfig from CLUSTERBAR_* environment variables.

    Raises:
        pydantic.ValidationError: If required variables are missing or invalid.
    """
    data = {
        field: os.environ[env_var]
        for env_var, field in _ENV_FIELDS.items()
        if os.environ.get(env_var)
    }
    return ClusterConfig(**data)


def get_settings(config_path: Optional[str] = None) -> ClusterConfig:
    """Get settings from a config file, falling back to the environment."""
    try:
        return load_config(config_path)
    except FileNotFoundError:
        if config_path is not None or os.environ.get("CLUSTERBAR_CONFIG"):
            raise
        logger.info("No config file found, reading settings from environment")
        return settings_from_env()
