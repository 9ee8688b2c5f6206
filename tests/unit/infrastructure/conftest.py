from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession


@pytest.fixture
def db_session():
    """Provides a mocked asynchronous database session."""
    mock_session = AsyncMock(spec=AsyncSession)
    mock_session.add = MagicMock()
    mock_session.execute = AsyncMock(return_value=MagicMock(rowcount=1))
    mock_session.commit = AsyncMock()
    mock_session.rollback = AsyncMock()
    mock_session.refresh = AsyncMock()
    return mock_session


@pytest.fixture
def session_factory(db_session):
    """Provides a session factory whose sessions are the mocked db_session."""
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = db_session
    factory.return_value.__aexit__.return_value = False
    return factory
