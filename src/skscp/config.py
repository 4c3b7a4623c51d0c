"""
SKSCP configuration.

Settings live in ``~/.skscp/config.yaml`` (override the directory
with SKSCP_HOME). Environment variables win over the file, and CLI
options win over both.

    workspace: ~/clawd
    agent: lumina
    token: s3cret
    port: 7780
    remote: http://studio.local:7780
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ValidationError

from . import SOUL_HOME

logger = logging.getLogger("skscp.config")

CONFIG_FILE = "config.yaml"
DEFAULT_PORT = 7780

ENV_OVERRIDES = {
    "SKSCP_WORKSPACE": "workspace",
    "SKSCP_AGENT": "agent",
    "SKSCP_TOKEN": "token",
    "SKSCP_REMOTE": "remote",
    "SKSCP_HOST": "host",
    "SKSCP_PORT": "port",
}


class SoulConfig(BaseModel):
    """Resolved SKSCP settings.

    Attributes:
        workspace: Agent workspace holding the soul files.
        agent: Agent name stamped into manifests.
        token: Bearer token for the STP server / client.
        host: Interface the server binds to.
        port: Server port.
        remote: Base URL of a remote STP server.
    """

    workspace: Optional[Path] = None
    agent: str = ""
    token: str = ""
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    remote: str = ""


def load_config(home: Optional[Path] = None) -> SoulConfig:
    """Load config.yaml from the SKSCP home and apply env overrides.

    Args:
        home: SKSCP home directory. Defaults to ~/.skscp.

    Returns:
        SoulConfig: Merged settings. Missing file means defaults.
    """
    home_path = (home or Path(SOUL_HOME)).expanduser()
    config_file = home_path / CONFIG_FILE

    data: dict = {}
    if config_file.exists():
        try:
            data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            logger.warning("Ignoring invalid %s: %s", config_file, exc)
            data = {}
        if not isinstance(data, dict):
            logger.warning("Ignoring %s: expected a mapping", config_file)
            data = {}

    for env_name, key in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            data[key] = value

    values = {k: v for k, v in data.items() if k in SoulConfig.model_fields}
    try:
        config = SoulConfig(**values)
    except ValidationError as exc:
        bad = {str(err["loc"][0]) for err in exc.errors() if err["loc"]}
        logger.warning("Ignoring invalid SKSCP setting(s) %s: %s", ", ".join(sorted(bad)), exc)
        config = SoulConfig(**{k: v for k, v in values.items() if k not in bad})

    if config.workspace is not None:
        config.workspace = config.workspace.expanduser()
    return config
