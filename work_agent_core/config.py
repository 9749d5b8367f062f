"""
Runtime configuration for work_agent_core.

Settings are resolved in this order:
1. Values passed to configure()
2. Environment variables (WORK_AGENT_DIR, WORK_AGENT_REGION, ...)
3. Defaults below

Example:
    from work_agent_core.config import configure, get_config

    configure(work_agent_dir="~/.work-agent", log_level="DEBUG")
    config = get_config()
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

DEFAULT_WORK_AGENT_DIR = ".work-agent"
DEFAULT_REGION = "us-east-1"
DEFAULT_MODEL = "anthropic.claude-3-5-sonnet-20240620-v1:0"

_ENV_VARS = {
    "work_agent_dir": "WORK_AGENT_DIR",
    "default_region": "WORK_AGENT_REGION",
    "default_model": "WORK_AGENT_DEFAULT_MODEL",
    "log_level": "WORK_AGENT_LOG_LEVEL",
    "aws_profile": "AWS_PROFILE",
}


@dataclass
class RuntimeConfig:
    """Process-wide settings for the storage engine and lifecycle manager."""

    work_agent_dir: str = DEFAULT_WORK_AGENT_DIR
    default_region: str = DEFAULT_REGION
    default_model: str = DEFAULT_MODEL
    log_level: str = "INFO"

    # Credentials for the model client. None means the default AWS chain.
    aws_profile: Optional[str] = None
    aws_access_key: Optional[str] = None
    aws_secret_key: Optional[str] = None
    aws_session_token: Optional[str] = None

    extra: dict = field(default_factory=dict)

    @property
    def root_dir(self) -> Path:
        """Absolute root directory for all stored data."""
        return Path(self.work_agent_dir).expanduser().resolve()

    def get_aws_credentials(self) -> dict:
        """Explicit AWS credentials, omitting unset values."""
        credentials = {
            "aws_profile": self.aws_profile,
            "aws_access_key": self.aws_access_key,
            "aws_secret_key": self.aws_secret_key,
            "aws_session_token": self.aws_session_token,
        }
        return {k: v for k, v in credentials.items() if v}

    @classmethod
    def from_env(cls) -> "RuntimeConfig":
        """Build a config from environment variables."""
        kwargs = {}
        for name, env_var in _ENV_VARS.items():
            value = os.environ.get(env_var)
            if value:
                kwargs[name] = value
        return cls(**kwargs)


_config: Optional[RuntimeConfig] = None


def configure(**kwargs) -> RuntimeConfig:
    """
    Configure the global runtime settings.

    Unknown keys are kept in `extra` rather than rejected.

    Returns:
        The updated RuntimeConfig
    """
    global _config

    config = get_config()
    known = {f.name for f in fields(RuntimeConfig)}
    for key, value in kwargs.items():
        if key in known:
            setattr(config, key, value)
        else:
            config.extra[key] = value

    _config = config
    return config


def get_config() -> RuntimeConfig:
    """Get the global runtime settings, loading them from the environment on first use."""
    global _config

    if _config is None:
        _config = RuntimeConfig.from_env()

    return _config


def reset_config() -> None:
    """Forget configured settings. Useful for testing."""
    global _config
    _config = None


def configure_logging(level: Optional[str] = None) -> None:
    """Attach a stream handler to the package logger."""
    level = level or get_config().log_level
    logger = logging.getLogger("work_agent_core")
    logger.setLevel(level.upper())
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(handler)
