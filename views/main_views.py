# This file defines the top-level routes of the application.
# It exposes a health endpoint describing the running service.

"""
Blueprint for main application routes.
"""
from flask import Blueprint, current_app, jsonify, Response

from bond_generator.tags import OPTIONAL_TAGS, REQUIRED_TAGS

# Define the blueprint for main routes
main_bp = Blueprint("main", __name__)


@main_bp.route("/health")
def health() -> Response:
    """Liveness check with the tag vocabulary the service accepts."""
    current_app.logger.debug("Health check requested")
    return jsonify(
        {
            "status": "ok",
            "service": "bond-generator",
            "required_tags": list(REQUIRED_TAGS),
            "optional_tags": list(OPTIONAL_TAGS),
        }
    )
