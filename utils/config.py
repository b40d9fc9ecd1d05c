# utils/config.py
import json
import pathlib
import logging
from dataclasses import dataclass
from typing import Optional, Any, Dict, List, Tuple

logger = logging.getLogger(__name__)

# --- Global variable to store the loading error from initial load ---
_USER_CONFIG_LOAD_ERROR_MSG: Optional[str] = None


@dataclass
class ConfigItem:
    key: str                  # Internal key used in config dictionaries
    label: str                # Human readable name, used in warnings
    default: Any              # Default value for this setting
    choices: Optional[List[str]] = None  # Allowed values, if restricted
    min_val: Optional[int] = None        # For numbers, minimum value
    max_val: Optional[int] = None        # For numbers, maximum value

    def validate(self, value: Any) -> Optional[str]:
        """Returns an error message if value is not acceptable for this item, otherwise None."""
        expected_type = type(self.default)
        # bool is a subclass of int; keep them apart
        if isinstance(value, bool) != (expected_type is bool) or not isinstance(value, expected_type):
            return f"{self.label} must be of type {expected_type.__name__}, got {type(value).__name__}"
        if self.choices is not None and value not in self.choices:
            return f"{self.label} must be one of {', '.join(self.choices)}, got '{value}'"
        if self.min_val is not None and value < self.min_val:
            return f"{self.label} must be at least {self.min_val}, got {value}"
        if self.max_val is not None and value > self.max_val:
            return f"{self.label} must be at most {self.max_val}, got {value}"
        return None


CONFIG_ITEM_DEFINITIONS: List[ConfigItem] = [
    ConfigItem(key="theme", label="Application Theme", default="light",
               choices=["auto", "light", "dark"]),
    ConfigItem(key="optimistic_load_all", label="Optimistic Load All", default=True),
    ConfigItem(key="transfer_timeout_sec", label="Transfer Timeout (seconds)", default=0,
               min_val=0, max_val=600),
    ConfigItem(key="image_width", label="Image Width", default=120, min_val=1, max_val=5000),
    ConfigItem(key="image_height", label="Image Height", default=80, min_val=1, max_val=5000),
]
CONFIG_ITEMS_BY_KEY: Dict[str, ConfigItem] = {item.key: item for item in CONFIG_ITEM_DEFINITIONS}

USER_CONFIG_DIR = pathlib.Path.home() / ".config" / "picsum_rows"
USER_CONFIG_FILE = USER_CONFIG_DIR / "config.json"

DEFAULT_CONFIG: Dict[str, Any] = {item.key: item.default for item in CONFIG_ITEM_DEFINITIONS}
USER_CONFIG: Dict[str, Any] = {}

DEFAULT_REQUESTS_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/99.0.4844.82 Safari/537.36',
    'Accept': 'image/*,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.9',
}

def load_config(path: pathlib.Path) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """
    Loads configuration from a JSON file.
    Returns a tuple: (config_data, error_message).
    config_data is the loaded dictionary, {} if the file is not found, or None if it is corrupted.
    error_message contains the error description if any.
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            config_data = json.load(f)
    except FileNotFoundError:
        logger.info(f"User config file {path} not found. Using defaults.")
        return {}, None
    except json.JSONDecodeError as e:
        logger.error(f"Could not decode config file {path}. Error: {e}.")
        return None, _back_up_corrupted_file(path, "JSON format error")
    except OSError as e:
        logger.error(f"Could not read config file {path}: {e}")
        return None, f"Could not read config file {path.name}: {e}"

    if not isinstance(config_data, dict):
        logger.error(f"Config file {path} does not contain a JSON object.")
        return None, _back_up_corrupted_file(path, "top level is not an object")

    logger.info(f"Successfully loaded config from {path}")
    return config_data, None


def _back_up_corrupted_file(path: pathlib.Path, reason: str) -> str:
    # config.json -> config.corrupted.json, config.corrupted.1.json, ...
    base_corrupted_name_stem = path.stem + ".corrupted"
    corrupted_file_path = path.with_stem(base_corrupted_name_stem)

    counter = 0
    while corrupted_file_path.exists():
        counter += 1
        corrupted_file_path = path.with_stem(f"{base_corrupted_name_stem}.{counter}")

    try:
        path.rename(corrupted_file_path)
    except OSError as ose:
        logger.error(f"Could not back up corrupted file {path.name} to {corrupted_file_path.name}: {ose}")
        return (f"Error decoding config file {path.name} ({reason}).\n"
                f"Could not back it up to {corrupted_file_path.name} due to a system error: {ose}")

    logger.info(f"Backed up corrupted config file {path.name} to {corrupted_file_path.name}")
    return f"Error decoding config file {path.name} ({reason}).\nIt has been backed up as {corrupted_file_path.name}."


def merge_config(base: Dict[str, Any], overrides: Optional[Dict[str, Any]]) -> Tuple[Dict[str, Any], List[str]]:
    """
    Layers overrides on top of base. Unknown keys are ignored and invalid values
    keep the base value. Returns the merged config and a list of warnings.
    """
    merged = dict(base)
    warnings: List[str] = []
    for key, value in (overrides or {}).items():
        item = CONFIG_ITEMS_BY_KEY.get(key)
        if item is None:
            logger.debug(f"Ignoring unknown config key '{key}'.")
            continue
        error = item.validate(value)
        if error:
            logger.warning(f"Invalid config value: {error}. Keeping {merged.get(key)!r}.")
            warnings.append(error)
            continue
        merged[key] = value
    return merged, warnings


def initialize_user_config(path: pathlib.Path = USER_CONFIG_FILE) -> Dict[str, Any]:
    """
    Populates the global USER_CONFIG from DEFAULT_CONFIG and the user's config file.
    Loading problems are remembered for get_initial_config_loading_errors().
    """
    global _USER_CONFIG_LOAD_ERROR_MSG

    user_config_data_from_file, user_load_err = load_config(path)
    merged, warnings = merge_config(DEFAULT_CONFIG, user_config_data_from_file)
    if warnings and not user_load_err:
        user_load_err = f"Some settings in {path.name} were invalid and defaults were used:\n" + "\n".join(warnings)
    _USER_CONFIG_LOAD_ERROR_MSG = user_load_err

    USER_CONFIG.clear()
    USER_CONFIG.update(merged)

    logger.info("Configuration loading and processing complete.")
    if _USER_CONFIG_LOAD_ERROR_MSG:
        logger.warning(f"User config loading issue: {_USER_CONFIG_LOAD_ERROR_MSG}")
    return USER_CONFIG


def get_initial_config_loading_errors() -> List[str]:
    """Returns a list of error messages encountered during config loading."""
    return [_USER_CONFIG_LOAD_ERROR_MSG] if _USER_CONFIG_LOAD_ERROR_MSG else []
