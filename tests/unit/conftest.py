"""Fixtures for unit tests; no database is needed."""

import pytest

from versioned_session.session import Session

from ..helpers import make_connection


@pytest.fixture
def connection():
    """Create a mocked pinned connection."""
    return make_connection()


@pytest.fixture
def session(connection):
    """Session over the mocked connection."""
    return Session(connection)
