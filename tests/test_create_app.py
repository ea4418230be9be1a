# Purpose: Smoke-tests for Flask app factory and blueprint registration.

import os

from flask import Flask

from app import create_app


def test_create_app_registers_blueprints(tmp_path):
    app = create_app({"TESTING": True, "DATA_FOLDER": str(tmp_path / "data")})
    assert isinstance(app, Flask)
    assert {"main", "bond_generator_bp"} <= set(app.blueprints.keys())
    rules = {rule.rule for rule in app.url_map.iter_rules()}
    assert "/health" in rules
    assert "/bond-generator/generate" in rules


def test_create_app_creates_drafts_folder(tmp_path):
    app = create_app({"TESTING": True, "DATA_FOLDER": str(tmp_path / "data")})
    assert app.config["DRAFTS_FOLDER"] == os.path.join(str(tmp_path / "data"), "drafts")
    assert os.path.isdir(app.config["DRAFTS_FOLDER"])


def test_secret_key_and_upload_limit_come_from_settings(tmp_path):
    app = create_app({"TESTING": True, "DATA_FOLDER": str(tmp_path / "data")})
    assert app.config["SECRET_KEY"] == "test"
    assert app.config["MAX_CONTENT_LENGTH"] > 0
