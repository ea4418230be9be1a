# This file defines the main entry point and structure for the Bond Generator Flask web application.
# It utilizes the Application Factory pattern (`create_app`) to initialize and configure the Flask app.
# Key responsibilities include:
# - Creating the Flask application instance.
# - Setting up basic configuration (secret key, upload size guard).
# - Ensuring necessary folders (the instance folder and the data folder) exist.
# - Determining the absolute data folder path using `core.utils.get_data_folder_path`.
# - Centralizing logging configuration (File and Console handlers).
# - Registering Blueprints (`main_bp`, `bond_generator_bp`) from the `views` directory.
# - Providing a conditional block (`if __name__ == '__main__':`) to run the development server.

from flask import Flask
import os
import logging
from logging.handlers import RotatingFileHandler

from core.config import (
    DRAFTS_SUBFOLDER,
    LOG_BACKUP_COUNT,
    LOG_FILE_NAME,
    LOG_FORMAT,
    LOG_MAX_BYTES,
    MAX_UPLOAD_BYTES,
)
from core.settings_loader import get_app_config
from core.utils import get_data_folder_path

from typing import Any, Dict, Optional


def _configure_logging(app: Flask) -> None:
    """Attach a rotating file handler and a console handler to app.logger and the root logger."""
    # Remove Flask's default handlers
    app.logger.handlers.clear()
    app.logger.setLevel(logging.DEBUG)

    log_formatter = logging.Formatter(LOG_FORMAT)

    log_file_path = os.path.join(app.instance_path, LOG_FILE_NAME)
    try:
        file_handler = RotatingFileHandler(
            log_file_path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT
        )
        file_handler.setFormatter(log_formatter)
        file_handler.setLevel(logging.DEBUG)
        app.logger.addHandler(file_handler)
        logging.getLogger().addHandler(file_handler)
        logging.getLogger().setLevel(logging.DEBUG)
        app.logger.info(f"File logging configured to: {log_file_path} (Level: DEBUG)")
    except OSError as e:
        app.logger.error(
            f"Failed to configure file logging to {log_file_path}: {e}", exc_info=True
        )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(log_formatter)
    console_handler.setLevel(logging.INFO)
    app.logger.addHandler(console_handler)
    logging.getLogger().addHandler(console_handler)

    app.logger.info("Centralized logging configured (File & Console).")


def create_app(test_config: Optional[Dict[str, Any]] = None) -> Flask:
    """Factory function to create and configure the Flask app."""
    app = Flask(__name__, instance_relative_config=True)

    app_cfg = get_app_config()
    app.config.from_mapping(
        SECRET_KEY=app_cfg.get("secret_key", "dev"),  # CHANGE for production!
        MAX_CONTENT_LENGTH=MAX_UPLOAD_BYTES,
    )
    app.config.from_object("core.config")
    if test_config:
        app.config.update(test_config)

    # Ensure the instance folder exists (needed for logging)
    try:
        os.makedirs(app.instance_path, exist_ok=True)
    except OSError as e:
        app.logger.error(
            f"Could not create instance folder at {app.instance_path}: {e}", exc_info=True
        )

    if not app.config.get("TESTING"):
        _configure_logging(app)
    app.logger.info(f"Application root path: {app.root_path}")

    # --- Determine and set the Data Folder Path ---
    if not app.config.get("DATA_FOLDER"):
        app.config["DATA_FOLDER"] = get_data_folder_path(app_root_path=app.root_path)
    app.config.setdefault(
        "DRAFTS_FOLDER", os.path.join(app.config["DATA_FOLDER"], DRAFTS_SUBFOLDER)
    )
    os.makedirs(app.config["DRAFTS_FOLDER"], exist_ok=True)
    app.logger.info(f"Data folder path set to: {app.config['DATA_FOLDER']}")

    # --- Register Blueprints ---
    try:
        from views.main_views import main_bp
        from views.bond_generator_views import bond_generator_bp
    except ImportError as imp_err:
        app.logger.error(f"Blueprint import failed: {imp_err}", exc_info=True)
        raise

    app.register_blueprint(main_bp)
    app.register_blueprint(bond_generator_bp)

    app.logger.info("Registered Blueprints:")
    for bp in (main_bp, bond_generator_bp):
        app.logger.info(f"- {bp.name} (prefix: {bp.url_prefix})")

    return app


# --- Application Execution ---
if __name__ == "__main__":
    app = create_app()
    app.run(debug=True, host="0.0.0.0")
