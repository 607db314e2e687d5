"""streamreport configuration management.

Handles:
- Report options (title, runtime display, backtrace exclusion, snippets)
- Loading with precedence: CLI > YAML config file > .env > env vars
- Asset data directory lookup
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from streamreport.core.diagnostics import DEFAULT_CONTEXT_LINES, DEFAULT_EXCLUDE_PATTERN
from streamreport.errors import ConfigError, ErrorCode

ENV_PREFIX = "STREAMREPORT_"

DEFAULT_TITLE = "Test Results"
DEFAULT_EDITOR_URL = "file://{path}"

# option name -> environment key (without prefix)
_ENV_KEYS = {
    "title": "TITLE",
    "exclude_pattern": "EXCLUDE_PATTERN",
    "context_lines": "CONTEXT_LINES",
    "show_runtime": "SHOW_RUNTIME",
    "strict_nesting": "STRICT_NESTING",
    "editor_url_template": "EDITOR_URL",
    "datadir": "DATADIR",
    "log_level": "LOG_LEVEL",
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def default_datadir() -> Path:
    """Directory holding the packaged stylesheet, script and images."""
    return Path(__file__).resolve().parent / "data"


@dataclass
class ReportConfig:
    """streamreport runtime configuration."""

    title: str = DEFAULT_TITLE
    exclude_pattern: str = DEFAULT_EXCLUDE_PATTERN
    context_lines: int = DEFAULT_CONTEXT_LINES
    show_runtime: bool = True
    strict_nesting: bool = True
    editor_url_template: str = DEFAULT_EDITOR_URL
    datadir: Path = field(default_factory=default_datadir)
    log_level: str = "WARNING"
    config_file_path: Optional[Path] = None
    env_file_path: Optional[Path] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "title": self.title,
            "exclude_pattern": self.exclude_pattern,
            "context_lines": self.context_lines,
            "show_runtime": self.show_runtime,
            "strict_nesting": self.strict_nesting,
            "editor_url_template": self.editor_url_template,
            "datadir": str(self.datadir),
            "log_level": self.log_level,
            "config_file_path": str(self.config_file_path) if self.config_file_path else None,
            "env_file_path": str(self.env_file_path) if self.env_file_path else None,
        }


def parse_env_file(env_file: Path) -> dict[str, str]:
    """Parse a .env file into a dictionary.

    Supports:
    - KEY=value
    - KEY="quoted value"
    - KEY='single quoted'
    - export KEY=value
    - # comments
    - Empty lines
    """
    result: dict[str, str] = {}

    if not env_file.exists():
        return result

    for line in env_file.read_text(encoding="utf-8").splitlines():
        line = line.strip()

        # Skip empty lines and comments
        if not line or line.startswith("#"):
            continue

        if line.startswith("export "):
            line = line[7:]

        # Skip lines without =
        if "=" not in line:
            continue

        key, _, value = line.partition("=")
        key = key.strip()
        value = value.strip()

        # Remove quotes
        if (value.startswith('"') and value.endswith('"')) or (
            value.startswith("'") and value.endswith("'")
        ):
            value = value[1:-1]

        result[key] = value

    return result


def _find_env_file(start: Path | None = None) -> Path | None:
    """Find .env file by walking up directory tree.

    Stops at git root, home directory, or filesystem root.
    Returns None if not found.
    """
    current = (start or Path.cwd()).resolve()

    try:
        home = Path.home()
    except RuntimeError:
        home = None

    for _ in range(20):  # Max depth
        env_file = current / ".env"
        if env_file.exists():
            return env_file

        # Stop conditions
        if home and current == home:
            break
        if current == current.parent:
            break

        # Stop at git root (but check .env first)
        if (current / ".git").exists():
            break

        current = current.parent

    return None


def load_config_file(path: Path) -> dict[str, Any]:
    """Read a YAML config file into a dict of option overrides.

    Raises:
        ConfigError: If the file is missing or not a YAML mapping.
    """
    if not path.exists():
        raise ConfigError(str(path), ErrorCode.E001)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"{path}: {e}", ErrorCode.E002) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level is {type(data).__name__}, expected mapping", ErrorCode.E002)

    unknown = sorted(set(data) - set(_ENV_KEYS))
    if unknown:
        raise ConfigError(f"{path}: unknown option(s) {', '.join(unknown)}", ErrorCode.E002)
    return data


def _parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"{name}={value!r} is not a boolean")


def _parse_int(name: str, value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name}={value!r} is not an integer") from e
    if number < 0:
        raise ConfigError(f"{name}={number} must be >= 0")
    return number


def _check_pattern(pattern: str) -> str:
    try:
        re.compile(pattern)
    except re.error as e:
        raise ConfigError(f"{pattern!r}: {e}", ErrorCode.E003) from e
    return pattern


def _values_from_env(env_vars: dict[str, str]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for option, key in _ENV_KEYS.items():
        if ENV_PREFIX + key in env_vars:
            values[option] = env_vars[ENV_PREFIX + key]

    # legacy NO_RUNTIME hides timings whenever it is set, whatever its value
    if "NO_RUNTIME" in env_vars:
        values["show_runtime"] = False
    key = ENV_PREFIX + "NO_RUNTIME"
    if env_vars.get(key):
        values["show_runtime"] = not _parse_bool(key, env_vars[key])
    return values


def load_config(
    config_file: str | Path | None = None,
    env_file: str | Path | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> ReportConfig:
    """Load configuration with precedence: CLI > config file > .env > env vars.

    Args:
        config_file: Optional YAML file of option overrides
        env_file: Path to .env file to load (auto-discovered when omitted)
        cli_overrides: Options set on the command line; None values are ignored

    Returns:
        Loaded ReportConfig instance

    Raises:
        ConfigError: If any source holds an invalid value
    """
    cli_overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}

    # Step 1: Load environment variables as base
    env_vars = dict(os.environ)

    # Step 2: Load .env file and merge (overrides env vars)
    env_file_path: Path | None
    if env_file:
        env_file_path = Path(env_file)
    else:
        env_file_path = _find_env_file()
    if env_file_path and env_file_path.exists():
        env_vars.update(parse_env_file(env_file_path))
    else:
        env_file_path = None

    values = _values_from_env(env_vars)

    # Step 3: Config file
    config_file_path: Path | None = None
    if config_file:
        config_file_path = Path(config_file)
        values.update(load_config_file(config_file_path))

    # Step 4: CLI
    values.update(cli_overrides)

    # Step 5: Coerce
    config = ReportConfig(config_file_path=config_file_path, env_file_path=env_file_path)
    if "title" in values:
        config.title = str(values["title"])
    if "exclude_pattern" in values:
        config.exclude_pattern = _check_pattern(str(values["exclude_pattern"]))
    if "context_lines" in values:
        config.context_lines = _parse_int("context_lines", values["context_lines"])
    if "show_runtime" in values:
        config.show_runtime = _parse_bool("show_runtime", values["show_runtime"])
    if "strict_nesting" in values:
        config.strict_nesting = _parse_bool("strict_nesting", values["strict_nesting"])
    if "editor_url_template" in values:
        config.editor_url_template = str(values["editor_url_template"])
    if "datadir" in values:
        config.datadir = Path(values["datadir"]).expanduser()
    if "log_level" in values:
        level = str(values["log_level"]).upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ConfigError(f"log_level={values['log_level']!r} is not a logging level")
        config.log_level = level

    return config


# Global config instance (set by CLI)
_config: ReportConfig | None = None


def get_config() -> ReportConfig:
    """Get the current configuration.

    Raises:
        RuntimeError: If config not initialized (call load_config first)
    """
    if _config is None:
        raise RuntimeError("Config not initialized. Call load_config() first.")
    return _config


def set_config(config: ReportConfig) -> None:
    """Set the global configuration."""
    global _config
    _config = config
