import json
import logging
import os
from datetime import datetime

from pydantic import BaseModel, Field, ValidationError

from contacts_merge import DuplicateStrategy
from contacts_store import DEFAULT_FOLDER_NAME

# ===============================
# 🔧 CONFIGURATION SECTION
# ===============================

CONFIG_FILE = "reconciler_config.json"
LOG_DIR = "output"

# Google API Settings
SCOPES = ["https://www.googleapis.com/auth/contacts"]
CLIENT_SECRET_FILE = "client_secret.json"

KEYRING_SERVICE = "ContactsReconciler"
KEYRING_TOKEN_KEY = "google_token"


class ReconcilerConfig(BaseModel):
    default_folder: str = DEFAULT_FOLDER_NAME
    # Order is significant: the first substring match wins.
    company_folders: dict[str, str] = Field(default_factory=dict)
    duplicate_strategy: DuplicateStrategy = DuplicateStrategy.MERGE
    interactive: bool = False
    cross_folder_search: bool = True
    csv_mapping: str | None = None
    log_level: str = "INFO"
    output_dir: str = LOG_DIR
    client_secret_file: str = CLIENT_SECRET_FILE


def load_config(path: str = CONFIG_FILE) -> ReconcilerConfig:
    """Load settings from JSON; a missing file means defaults."""
    if not os.path.exists(path):
        logging.info(f"No config file at '{path}', using defaults.")
        return ReconcilerConfig()
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        config = ReconcilerConfig.model_validate(raw)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise ValueError(f"Invalid config file '{path}': {e}") from e
    logging.info(f"Loaded config from '{path}'.")
    return config


def save_config(config: ReconcilerConfig, path: str = CONFIG_FILE) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config.model_dump(mode="json"), f, indent=4, ensure_ascii=False)
    logging.info(f"Saved config to '{path}'.")


def setup_logging(log_dir: str = LOG_DIR, level: str = "INFO") -> str:
    """Configures timestamped logging."""
    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_filename = os.path.join(log_dir, f"reconciler_{timestamp}.log")

    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(log_filename, encoding="utf-8"),
            logging.StreamHandler(),
        ],
    )
    # basicConfig is a no-op once handlers exist
    logging.getLogger().setLevel(log_level)
    return timestamp


def init_app(path: str = CONFIG_FILE) -> tuple[ReconcilerConfig, str]:
    """Load settings, then configure logging from them. An invalid file falls back to defaults and is logged."""
    error = None
    try:
        config = load_config(path)
    except ValueError as e:
        config, error = ReconcilerConfig(), e
    timestamp = setup_logging(config.output_dir, config.log_level)
    if error is not None:
        logging.error(f"{error}; using default settings.")
    return config, timestamp
