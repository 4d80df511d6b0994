"""Configuration loading and validation"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

# Default config search paths (in order)
CONFIG_PATHS = [
    Path("htauth.yaml"),
    Path.home() / ".config" / "htauth" / "config.yaml",
    Path("/etc/htauth/config.yaml"),
]

BACKENDS = ("htpasswd", "htdigest", "static")


@dataclass
class AuthConfig:
    """Where credentials come from and how clients are challenged"""
    realm: str = "example.com"
    backend: str = "htpasswd"  # htpasswd, htdigest or static
    file: str = ""  # Path to the htpasswd/htdigest file
    users: dict = field(default_factory=dict)  # username -> secret, static backend only
    proxy: bool = False  # Use Proxy-Authorization / 407 instead of Authorization / 401


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: str = ""


@dataclass
class Config:
    auth: AuthConfig = field(default_factory=AuthConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations"""
    for path in CONFIG_PATHS:
        if path.exists():
            return path
    return None


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from YAML file"""
    if config_path:
        path = Path(config_path)
    else:
        path = find_config_file()

    if path is None or not path.exists():
        logger.warning("No config file found, using defaults")
        return Config()

    logger.info(f"Loading config from: {path}")

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    auth = AuthConfig(**data.get("auth", {}))
    if auth.backend not in BACKENDS:
        raise ValueError(
            f"Unknown auth backend {auth.backend!r}, expected one of {', '.join(BACKENDS)}"
        )

    return Config(
        auth=auth,
        logging=LoggingConfig(**data.get("logging", {})),
    )
