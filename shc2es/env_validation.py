"""Environment validation for shc2es .env files."""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping, Optional

from dotenv import dotenv_values

from .config import (
    validate_boolean,
    validate_file_path,
    validate_log_level,
    validate_required,
    validate_url,
)
from .errors import ConfigValidationError

PLACEHOLDER_VALUES = {
    "changeme",
    "your_password_here",
    "YOUR_PASSWORD_HERE",
}


@dataclass
class EnvValidationResult:
    """Structured result for environment validation."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def load_env_file(path: Path) -> dict[str, str]:
    """Load a .env file into a dict without mutating os.environ."""
    return {key: value for key, value in dotenv_values(path).items() if value is not None}


def validate_env_values(env: Mapping[str, str], require_kibana: bool = False) -> EnvValidationResult:
    """Validate every ingest variable and collect all problems at once."""
    result = EnvValidationResult()

    checks: list[Callable[[], object]] = [
        lambda: validate_url("ES_NODE", env.get("ES_NODE"), required=True),
        lambda: validate_required("ES_PASSWORD", env.get("ES_PASSWORD")),
        lambda: validate_file_path("ES_CA_CERT", env.get("ES_CA_CERT")),
        lambda: validate_boolean("ES_TLS_VERIFY", env.get("ES_TLS_VERIFY"), True),
        lambda: validate_url("KIBANA_NODE", env.get("KIBANA_NODE"), required=require_kibana),
        lambda: validate_log_level("LOG_LEVEL", env.get("LOG_LEVEL")),
    ]
    for check in checks:
        try:
            check()
        except ConfigValidationError as e:
            result.errors.append(str(e))

    if env.get("ES_PASSWORD", "").strip() in PLACEHOLDER_VALUES:
        result.errors.append("ES_PASSWORD still has its placeholder value.")

    if not env.get("KIBANA_NODE", "").strip():
        result.warnings.append("KIBANA_NODE not set; dashboard import will be skipped on --setup.")
    if not env.get("ES_INDEX_PREFIX", "").strip():
        result.warnings.append("ES_INDEX_PREFIX not set; defaulting to smart-home-events.")
    if env.get("ES_TLS_VERIFY", "").strip().lower() in {"0", "false", "no", "off"}:
        result.warnings.append("ES_TLS_VERIFY is disabled; certificates will not be checked.")

    return result


def validate_env_file(path: Path, require_kibana: bool = False) -> EnvValidationResult:
    """Load and validate a .env file."""
    return validate_env_values(load_env_file(path), require_kibana=require_kibana)


def _print_messages(result: EnvValidationResult) -> None:
    for error in result.errors:
        print(f"ERROR: {error}", file=sys.stderr)
    for warning in result.warnings:
        print(f"WARN: {warning}", file=sys.stderr)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Validate shc2es .env configuration.")
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to .env file (default: .env)",
    )
    parser.add_argument(
        "--require-kibana",
        action="store_true",
        help="Treat KIBANA_NODE as required (as for --setup)",
    )
    args = parser.parse_args(argv)

    env_path = Path(args.env_file).expanduser()
    if not env_path.exists():
        print(f"ERROR: .env file not found at {env_path}.", file=sys.stderr)
        return 1

    result = validate_env_file(env_path, require_kibana=args.require_kibana)
    _print_messages(result)

    if result.errors:
        return 1

    print("Environment validation OK.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
