"""Configuration management for shc2es"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Union
from urllib.parse import urlparse

from dotenv import load_dotenv

from .errors import ConfigValidationError

DEFAULT_INDEX_PREFIX = "smart-home-events"
VALID_LOG_LEVELS = ("trace", "debug", "info", "warn", "warning", "error", "fatal")


def user_config_dir() -> Path:
    """Base directory for data, logs and the user .env (``~/.shc2es``)."""
    return Path(os.path.expandvars(os.getenv("SHC2ES_HOME", "~/.shc2es"))).expanduser()


def default_data_dir() -> Path:
    return user_config_dir() / "data"


def default_logs_dir() -> Path:
    return user_config_dir() / "logs"


def find_env_file() -> Optional[Path]:
    """Local ./.env wins over ~/.shc2es/.env."""
    for candidate in (Path.cwd() / ".env", user_config_dir() / ".env"):
        if candidate.is_file():
            return candidate
    return None


def load_env() -> Optional[Path]:
    """Load the .env file into os.environ without overriding existing variables."""
    env_file = find_env_file()
    if env_file is not None:
        load_dotenv(env_file, override=False)
    return env_file


def _env_hint() -> str:
    env_file = find_env_file()
    if env_file:
        return f"Set it in {env_file}"
    return "Set it in ~/.shc2es/.env or create a local .env file"


def validate_required(name: str, value: Optional[str]) -> str:
    if not value or not value.strip():
        raise ConfigValidationError(f"{name} is required. {_env_hint()}", name)
    return value.strip()


def validate_url(name: str, value: Optional[str], required: bool = True) -> Optional[str]:
    """Check for an http(s) URL without a trailing path slash."""
    if not value or not value.strip():
        if required:
            raise ConfigValidationError(
                f"{name} is required and must be a valid URL "
                f"(e.g., https://localhost:9200). {_env_hint()}",
                name,
            )
        return None

    trimmed = value.strip()
    if not re.match(r"^https?://", trimmed):
        raise ConfigValidationError(
            f"{name} must start with http:// or https:// (got: {trimmed}). {_env_hint()}",
            name,
        )
    if not urlparse(trimmed).netloc:
        raise ConfigValidationError(
            f"{name} is not a valid URL (got: {trimmed}). {_env_hint()}", name
        )
    if trimmed.endswith("/") and not re.match(r"^https?://[^/]+/$", trimmed):
        raise ConfigValidationError(
            f"{name} should not have a trailing slash (got: {trimmed}). {_env_hint()}",
            name,
        )
    return trimmed.rstrip("/")


def validate_file_path(name: str, value: Optional[str], required: bool = False) -> Optional[Path]:
    if not value or not value.strip():
        if required:
            raise ConfigValidationError(f"{name} is required. {_env_hint()}", name)
        return None
    path = Path(value.strip()).expanduser()
    if not path.exists():
        raise ConfigValidationError(f"{name} file not found: {path}. {_env_hint()}", name)
    return path


def validate_boolean(name: str, value: Optional[str], default: bool = False) -> bool:
    if value is None or not value.strip():
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ConfigValidationError(
        f"{name} must be 'true' or 'false' (got: {value}). {_env_hint()}", name
    )


def validate_log_level(name: str, value: Optional[str], default: str = "info") -> str:
    if value is None or not value.strip():
        return default
    normalized = value.strip().lower()
    if normalized not in VALID_LOG_LEVELS:
        raise ConfigValidationError(
            f"{name} must be one of: {', '.join(VALID_LOG_LEVELS)} (got: {value}). {_env_hint()}",
            name,
        )
    return normalized


def _parse_number(name: str, value: Optional[str], default, cast):
    if value is None or not value.strip():
        return default
    try:
        number = cast(value.strip())
    except ValueError:
        raise ConfigValidationError(f"{name} must be a number (got: {value}). {_env_hint()}", name)
    if number <= 0:
        raise ConfigValidationError(f"{name} must be positive (got: {value}). {_env_hint()}", name)
    return number


@dataclass
class IngestConfig:
    """Configuration for the ingest command"""

    # Elasticsearch settings
    es_node: str
    es_password: str
    es_user: str
    es_ca_cert: Optional[Path]
    es_tls_verify: bool
    es_index_prefix: str

    # Kibana settings
    kibana_node: Optional[str]

    # Paths and logging
    data_dir: Path
    log_dir: Path
    log_level: str

    # Watch mode
    watch_poll_interval: float
    max_in_flight: int

    @property
    def tls_verify(self) -> Union[bool, str]:
        """Value for requests' ``verify``: False, a CA bundle path, or True."""
        if not self.es_tls_verify:
            return False
        if self.es_ca_cert:
            return str(self.es_ca_cert)
        return True

    @classmethod
    def from_env(
        cls, env: Optional[Mapping[str, str]] = None, require_kibana: bool = False
    ) -> "IngestConfig":
        """Load configuration from environment variables"""
        env = os.environ if env is None else env

        es_node = validate_url("ES_NODE", env.get("ES_NODE"), required=True)
        es_password = validate_required("ES_PASSWORD", env.get("ES_PASSWORD"))
        es_ca_cert = validate_file_path("ES_CA_CERT", env.get("ES_CA_CERT"))
        es_tls_verify = validate_boolean("ES_TLS_VERIFY", env.get("ES_TLS_VERIFY"), True)
        kibana_node = validate_url("KIBANA_NODE", env.get("KIBANA_NODE"), required=require_kibana)

        data_dir = Path(env.get("SHC2ES_DATA_DIR") or default_data_dir()).expanduser()
        log_dir = Path(env.get("SHC2ES_LOG_DIR") or default_logs_dir()).expanduser()

        return cls(
            es_node=es_node,
            es_password=es_password,
            es_user=env.get("ES_USER") or "elastic",
            es_ca_cert=es_ca_cert,
            es_tls_verify=es_tls_verify,
            es_index_prefix=env.get("ES_INDEX_PREFIX") or DEFAULT_INDEX_PREFIX,
            kibana_node=kibana_node,
            data_dir=data_dir,
            log_dir=log_dir,
            log_level=validate_log_level("LOG_LEVEL", env.get("LOG_LEVEL")),
            watch_poll_interval=_parse_number(
                "SHC2ES_WATCH_POLL_INTERVAL", env.get("SHC2ES_WATCH_POLL_INTERVAL"), 1.0, float
            ),
            max_in_flight=_parse_number(
                "SHC2ES_MAX_IN_FLIGHT", env.get("SHC2ES_MAX_IN_FLIGHT"), 8, int
            ),
        )


@dataclass
class DashboardConfig:
    """Configuration for the export-dashboard command"""

    kibana_node: str
    es_user: str
    es_password: str
    es_ca_cert: Optional[Path]
    es_tls_verify: bool
    log_dir: Path
    log_level: str

    @property
    def tls_verify(self) -> Union[bool, str]:
        if not self.es_tls_verify:
            return False
        if self.es_ca_cert:
            return str(self.es_ca_cert)
        return True

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "DashboardConfig":
        env = os.environ if env is None else env
        return cls(
            kibana_node=validate_url("KIBANA_NODE", env.get("KIBANA_NODE"), required=True),
            es_user=env.get("ES_USER") or "elastic",
            es_password=validate_required("ES_PASSWORD", env.get("ES_PASSWORD")),
            es_ca_cert=validate_file_path("ES_CA_CERT", env.get("ES_CA_CERT")),
            es_tls_verify=validate_boolean("ES_TLS_VERIFY", env.get("ES_TLS_VERIFY"), True),
            log_dir=Path(env.get("SHC2ES_LOG_DIR") or default_logs_dir()).expanduser(),
            log_level=validate_log_level("LOG_LEVEL", env.get("LOG_LEVEL")),
        )
