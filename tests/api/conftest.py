"""
API Test Layer Configuration

Layer 1: API Contract Tests
- Drives the FastAPI app in-process through httpx.ASGITransport
- The calendar service behind the app uses the in-memory repository
- Validates HTTP contracts: routes, status codes, payload shapes

Usage:
    pytest tests/api -v                    # Run all API tests
    pytest tests/api -v -k "invite"        # Run invite API tests
"""

import os
import sys
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio

os.environ["ENV"] = "testing"
os.environ["NATS_ENABLED"] = "false"

# Add project root
sys.path.insert(
    0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
)

from microservices.calendar_service.calendar_service import CalendarService
from microservices.calendar_service.main import app, microservice
from tests.component.golden.calendar_service.mocks import MockCalendarRepository
from tests.component.mocks import MockEventBus


def pytest_configure(config):
    """Configure custom markers"""
    config.addinivalue_line("markers", "api: marks tests as API contract tests")
    config.addinivalue_line("markers", "golden: characterization tests for current behavior")


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
def calendar_repository() -> MockCalendarRepository:
    return MockCalendarRepository()


@pytest.fixture
def calendar_event_bus() -> MockEventBus:
    return MockEventBus()


@pytest.fixture
def calendar_service(calendar_repository, calendar_event_bus):
    """Install a mock-backed service in the app for the duration of a test"""
    service = CalendarService(repository=calendar_repository, event_bus=calendar_event_bus)
    previous = microservice.service
    microservice.service = service
    yield service
    microservice.service = previous


# =============================================================================
# HTTP Client Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def api_client(calendar_service) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Async HTTP client bound to the in-process app"""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
