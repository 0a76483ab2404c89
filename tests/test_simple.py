"""Smoke tests for settings and application assembly."""


def test_settings_defaults():
    """The test run points at an in-memory database."""
    from natours.core.config import settings
    assert settings.database_url == "sqlite+aiosqlite:///:memory:"
    assert settings.api_prefix == "/api/v1"
    assert settings.default_page_limit == 100


def test_import_app():
    """Test that we can import the app module."""
    from natours.main import create_app
    app = create_app()
    assert app is not None


def test_api_routes_are_prefixed():
    from natours.main import create_app
    paths = {getattr(route, "path", None) for route in create_app().routes}
    assert "/api/v1/tours" in paths
    assert "/api/v1/tours/{tour_id}" in paths
    assert "/api/v1/tours/monthly-plan/{year}" in paths
