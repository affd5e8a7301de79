#!/usr/bin/env python3
"""
集成测试 Pytest 配置和 Fixtures

Runs the calendar repository against a real PostgreSQL. Tests skip when the
database cannot be reached or SKIP_DB_TESTS is set.

Usage:
    POSTGRES_HOST=localhost pytest tests/integration -v
"""

import os
import sys
from pathlib import Path
from typing import AsyncGenerator

import asyncpg
import pytest
import pytest_asyncio

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../.."))

from core.postgres_client import PostgresClientWrapper
from microservices.calendar_service.calendar_repository import CalendarRepository

MIGRATIONS_DIR = (
    Path(__file__).resolve().parents[2] / "microservices" / "calendar_service" / "migrations"
)


# ==================== 环境配置 ====================

class TestConfig:
    """测试配置"""

    POSTGRES_HOST = os.getenv("POSTGRES_HOST", "localhost")
    POSTGRES_PORT = int(os.getenv("POSTGRES_PORT", "5432"))
    POSTGRES_DB = os.getenv("POSTGRES_DB", "postgres")
    POSTGRES_USER = os.getenv("POSTGRES_USER", "postgres")
    POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")


@pytest.fixture(scope="session")
def config():
    """测试配置"""
    return TestConfig()


@pytest_asyncio.fixture(scope="function")
async def postgres(config: TestConfig) -> AsyncGenerator[PostgresClientWrapper, None]:
    """PostgreSQL client with the calendar schema applied"""
    if os.getenv("SKIP_DB_TESTS"):
        pytest.skip("SKIP_DB_TESTS is set")

    db = PostgresClientWrapper(
        service_name="calendar_service_integration",
        host=config.POSTGRES_HOST,
        port=config.POSTGRES_PORT,
        database=config.POSTGRES_DB,
        username=config.POSTGRES_USER,
        password=config.POSTGRES_PASSWORD,
        min_size=1,
        max_size=2,
    )
    try:
        for migration in sorted(MIGRATIONS_DIR.glob("*.sql")):
            await db.execute(migration.read_text())
    except (OSError, asyncpg.PostgresError) as e:
        await db.close()
        pytest.skip(f"PostgreSQL not available: {e}")

    yield db
    await db.close()


@pytest_asyncio.fixture(scope="function")
async def calendar_repository(postgres) -> CalendarRepository:
    return CalendarRepository(db=postgres)


def pytest_configure(config):
    """注册自定义标记"""
    config.addinivalue_line("markers", "integration: Integration tests against real infrastructure")
    config.addinivalue_line("markers", "requires_db: Needs a running PostgreSQL")
