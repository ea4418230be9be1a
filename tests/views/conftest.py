# Purpose: Pytest fixtures shared across view tests.

import io
import os
import sys

import pytest

# Add project root to sys.path if necessary, depending on test runner setup
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from app import create_app


@pytest.fixture(scope="function")
def app(tmp_path):
    """Creates an app instance per test with its data folder under tmp_path."""
    app = create_app(
        {
            "TESTING": True,
            "DATA_FOLDER": str(tmp_path / "data"),
            "PROPAGATE_EXCEPTIONS": True,
        }
    )
    with app.app_context():
        yield app


@pytest.fixture(scope="function")
def client(app):
    """Provides a Flask test client derived from the app fixture."""
    return app.test_client()


@pytest.fixture
def auth_headers():
    return {"Authorization": "Bearer test-token"}


@pytest.fixture
def upload():
    """Builds a multipart file tuple for the test client."""

    def _upload(content, filename):
        return (io.BytesIO(content), filename)

    return _upload
