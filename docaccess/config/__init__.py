from docaccess.config.loader import SETTINGS_ENV_VAR, load_settings, settings_path_from_env
from docaccess.config.models import CollectionSettings, DataAccessSettings, SortField

__all__ = [
    "CollectionSettings",
    "DataAccessSettings",
    "SETTINGS_ENV_VAR",
    "SortField",
    "load_settings",
    "settings_path_from_env",
]
