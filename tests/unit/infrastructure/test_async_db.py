from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlmodel import SQLModel

from credo.infrastructure.database.async_db import build_async_url, create_db_and_tables


@pytest.mark.parametrize(
    "database_url, expected_url",
    [
        ("postgresql://u:p@db:5432/credo", "postgresql+asyncpg://u:p@db:5432/credo"),
        ("postgresql+psycopg2://u:p@db/credo", "postgresql+asyncpg://u:p@db/credo"),
        ("postgresql+asyncpg://u:p@db/credo", "postgresql+asyncpg://u:p@db/credo"),
    ],
)
def test_build_async_url_switches_driver(database_url, expected_url):
    url, connect_args = build_async_url(database_url)
    assert url == expected_url
    assert connect_args == {}


def test_build_async_url_moves_sslmode_into_connect_args():
    url, connect_args = build_async_url("postgresql://u:p@db/credo?sslmode=require&application_name=credo")
    assert url == "postgresql+asyncpg://u:p@db/credo?application_name=credo"
    assert connect_args == {"ssl": "require"}


@pytest.mark.parametrize("sslmode", ["disable", "allow", "prefer"])
def test_build_async_url_drops_optional_sslmodes(sslmode):
    url, connect_args = build_async_url(f"postgresql://u:p@db/credo?sslmode={sslmode}")
    assert url == "postgresql+asyncpg://u:p@db/credo"
    assert connect_args == {}


async def test_create_db_and_tables_runs_create_all():
    # Arrange
    conn = AsyncMock()
    engine = MagicMock()
    engine.begin.return_value.__aenter__.return_value = conn

    # Act
    await create_db_and_tables(engine)

    # Assert
    conn.run_sync.assert_awaited_once_with(SQLModel.metadata.create_all)
    assert {"users", "refresh_tokens", "password_resets"} <= set(SQLModel.metadata.tables)
