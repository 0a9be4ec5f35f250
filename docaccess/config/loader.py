import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import ValidationError

from docaccess.config.models import DataAccessSettings

SETTINGS_ENV_VAR = "DOCACCESS_SETTINGS"


def load_settings(path: Path) -> DataAccessSettings:
    """
    Load and validate the data access settings file.
    Raises FileNotFoundError if file missing.
    Raises ValueError if YAML or schema invalid.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Settings file not found at: {path}")

    with open(path) as f:
        content = f.read()

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML syntax in settings file: {e}") from e

    # An empty file means "no collections"
    if data is None:
        data = {}

    try:
        return DataAccessSettings.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Settings validation failed:\n{e}") from e


def settings_path_from_env(
    environ: Mapping[str, str] | None = None,
    default: Path | None = None,
) -> Path | None:
    """Settings path named by DOCACCESS_SETTINGS, else `default`."""
    env = os.environ if environ is None else environ
    value = env.get(SETTINGS_ENV_VAR)
    if value:
        return Path(value)
    return default
