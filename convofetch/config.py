"""
Run settings.

Settings come from a JSON file (``config.json`` by default) and can be
overridden per key through environment variables, which may themselves be
loaded from a ``.env`` file:

    {
        "inputCsvPath": "conversations.csv",
        "outputCsvPath": "transcripts.csv",
        "bearerToken": "...",
        "baseApiUrl": "https://api.mypurecloud.com"
    }
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

DEFAULT_CONFIG_PATH = Path("config.json")

# config key -> environment variable that overrides it
ENV_OVERRIDES = {
    "inputCsvPath": "CONVOFETCH_INPUT_CSV",
    "outputCsvPath": "CONVOFETCH_OUTPUT_CSV",
    "bearerToken": "CONVOFETCH_BEARER_TOKEN",
    "baseApiUrl": "CONVOFETCH_BASE_API_URL",
}


class ConfigError(Exception):
    """Raised when settings are missing or malformed."""
    pass


@dataclass(frozen=True)
class Settings:
    input_path: Path
    output_path: Path
    auth_token: str
    base_url: str

    def masked(self) -> Dict[str, str]:
        """Settings as display strings with the token hidden."""
        token = self.auth_token
        shown = f"{token[:4]}..." if len(token) > 8 else "***"
        return {
            "inputCsvPath": str(self.input_path),
            "outputCsvPath": str(self.output_path),
            "bearerToken": shown,
            "baseApiUrl": self.base_url,
        }


def _read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        content = path.read_text(encoding="utf-8-sig").strip()
    except OSError as e:
        raise ConfigError(f"Could not read config file {path}: {e}") from e
    if not content:
        return {}
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return data


def settings_from_mapping(values: Mapping[str, Any]) -> Settings:
    missing = []
    resolved = {}
    for key in ENV_OVERRIDES:
        value = values.get(key)
        if value is not None and not isinstance(value, str):
            raise ConfigError(f"Config key '{key}' must be a string")
        if not value or not value.strip():
            missing.append(key)
        else:
            resolved[key] = value.strip()
    if missing:
        raise ConfigError(f"Missing config keys: {', '.join(missing)}")

    return Settings(
        input_path=Path(resolved["inputCsvPath"]),
        output_path=Path(resolved["outputCsvPath"]),
        auth_token=resolved["bearerToken"],
        base_url=resolved["baseApiUrl"],
    )


def load_settings(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """
    Load settings from the config file with environment overrides.

    Args:
        path: Config file (default: config.json). A missing file is only an
            error if the environment does not supply every key either.
        environ: Environment mapping (default: os.environ)

    Raises:
        ConfigError: On unreadable/invalid file or missing keys
    """
    path = Path(path) if path else DEFAULT_CONFIG_PATH
    environ = os.environ if environ is None else environ

    values = _read_config_file(path)
    for key, env_var in ENV_OVERRIDES.items():
        if environ.get(env_var):
            values[key] = environ[env_var]

    if not values:
        raise ConfigError(f"Config file not found: {path}")
    return settings_from_mapping(values)
