import json
from pathlib import Path

CONFIG_DIR = Path.home() / ".config" / "bankbridge"
SETTINGS_PATH = CONFIG_DIR / "settings.json"

DEFAULT_DATA_DIR = Path.home() / "Documents" / "bankbridge"
MASTER_DATA_FILENAME = "master_data.json"

DEFAULTS = {
    "data_dir": str(DEFAULT_DATA_DIR),
    "master_data_path": "",
    "backend": "file",
    "log_level": "",
}


def load_settings() -> dict:
    if SETTINGS_PATH.exists():
        with open(SETTINGS_PATH) as f:
            saved = json.loads(f.read())
        return {**DEFAULTS, **saved}
    return dict(DEFAULTS)


def save_settings(settings: dict) -> None:
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    with open(SETTINGS_PATH, "w") as f:
        f.write(json.dumps(settings, indent=2) + "\n")


def master_data_path(settings: dict) -> Path:
    """An explicit master_data_path wins; otherwise the file lives in data_dir."""
    if settings.get("master_data_path"):
        return Path(settings["master_data_path"]).expanduser()
    return Path(settings["data_dir"]).expanduser() / MASTER_DATA_FILENAME
