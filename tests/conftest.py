"""
Test configuration and fixtures for the WCAG scanner API.

Every test app gets its own context with in-memory collaborators, so no
browser, broker, database or AI provider is needed.
"""
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from tests.fakes import build_test_context, page

SITE = "https://example.org/"


@pytest.fixture
def context():
    """Context around a one-page site with no accessibility problems."""
    return build_test_context(pages={SITE: page()})


@pytest.fixture
def test_app(context):
    """Create FastAPI test application."""
    return create_app(context=context, app_settings=context.settings)


@pytest.fixture(scope="function")
def client(test_app) -> Generator[TestClient, None, None]:
    """
    Create a test client for making HTTP requests.
    This fixture provides a clean TestClient instance for each test function,
    ensuring proper isolation between tests.
    """
    with TestClient(test_app) as test_client:
        yield test_client
