# Purpose: Unit tests for main_views.py, covering the health endpoint.

from bond_generator.tags import OPTIONAL_TAGS, REQUIRED_TAGS


def test_health_needs_no_token(client):
    response = client.get("/health")
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["status"] == "ok"
    assert payload["service"] == "bond-generator"
    assert payload["required_tags"] == list(REQUIRED_TAGS)
    assert payload["optional_tags"] == list(OPTIONAL_TAGS)


def test_unknown_route_is_404(client):
    assert client.get("/nope").status_code == 404
