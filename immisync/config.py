from pathlib import Path
import copy
import json
import os

from loguru import logger

from immisync.errors import ConfigError

# === PATH CONFIGURATION ===
DATA_DIR = Path(os.environ.get("IMMISYNC_DATA_DIR", "data"))
LOG_DIR = DATA_DIR / "logs"

CONFIG_FILE = Path(os.environ.get("IMMISYNC_CONFIG", "sync_config.json"))

# === DEFAULTS ===
DEFAULT_CONFIG = {
    "server": "http://localhost:2283",
    "api_key": "",
    "log_level": "INFO",
    "upload": {
        "create_albums": True,
        "keep_partner": True,
        "create_stacks": True,
        "stack_jpg_raw": True,
        "stack_burst": True,
    },
}


def load_user_config(path: Path = None) -> dict:
    """
    Load the user's sync_config.json (server, api_key, upload defaults).
    Missing keys fall back to DEFAULT_CONFIG; IMMICH_URL and IMMICH_API_KEY
    override the file.
    """
    path = Path(path) if path is not None else CONFIG_FILE
    config = copy.deepcopy(DEFAULT_CONFIG)

    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                user = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigError(f"can't read config file '{path}': {e}") from e
        if not isinstance(user, dict):
            raise ConfigError(f"config file '{path}' must hold a JSON object")
        upload = user.pop("upload", {}) or {}
        config.update(user)
        config["upload"].update(upload)
    else:
        logger.debug("Config file '{}' not found. Using defaults.", path)

    if os.environ.get("IMMICH_URL"):
        config["server"] = os.environ["IMMICH_URL"]
    if os.environ.get("IMMICH_API_KEY"):
        config["api_key"] = os.environ["IMMICH_API_KEY"]

    return config
