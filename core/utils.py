# Purpose: Small shared helpers for the Bond Generator application.
# Resolves the runtime data folder (settings.yaml, overridable by environment)
# and provides filename sanitizing used by the packaging stage.

"""
Utility functions for the Flask application.
"""
import os
import re
import logging
from typing import Optional

logger = logging.getLogger(__name__)


def get_data_folder_path(app_root_path: Optional[str] = None) -> str:
    """
    Retrieves the data folder path, prioritizing the environment override, then settings, then a default.

    Resolves the path to an absolute path relative to the provided
    app_root_path or the project root. The folder is created if it does not exist.

    Args:
        app_root_path (str, optional): The root path of the application or script.
                                      If None, config.BASE_DIR is used. Defaults to None.

    Returns:
        str: The absolute path to the data folder.
    """
    from core.config import BASE_DIR, DATA_FOLDER_ENV_VAR, DEFAULT_DATA_FOLDER
    from core.settings_loader import get_app_config

    env_value = os.environ.get(DATA_FOLDER_ENV_VAR, "").strip()
    if env_value:
        chosen_path = env_value
        chosen_path_source = f"environment ({DATA_FOLDER_ENV_VAR})"
    else:
        configured = str(get_app_config().get("data_folder") or "").strip()
        if configured:
            chosen_path = configured
            chosen_path_source = "settings (data_folder)"
        else:
            chosen_path = DEFAULT_DATA_FOLDER
            chosen_path_source = "default"

    base_path = app_root_path or str(BASE_DIR)

    if os.path.isabs(chosen_path):
        absolute_path = chosen_path
        logger.info(f"Using absolute path from {chosen_path_source}: {absolute_path}")
    else:
        absolute_path = os.path.abspath(os.path.join(base_path, chosen_path))
        logger.info(
            f"Resolved relative path from {chosen_path_source} ('{chosen_path}') relative to '{base_path}' to absolute path: {absolute_path}"
        )

    if not os.path.isdir(absolute_path):
        logger.info(f"Data folder {absolute_path} does not exist, creating it")
        os.makedirs(absolute_path, exist_ok=True)
    return absolute_path


def sanitize_filename_component(value: Optional[str], default: str, max_length: int = 50) -> str:
    """Keep only ASCII letters and digits, truncated; fall back to default when nothing survives."""
    cleaned = re.sub(r"[^A-Za-z0-9]", "", value or "")[:max_length]
    return cleaned or default
