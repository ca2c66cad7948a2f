# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest fixtures for database integration tests.

Provides database sessions and engines for testing. Tests are skipped
unless TEST_DATABASE_URL points at a disposable PostgreSQL database.
"""

import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.infrastructure.database.models import Base, Branch, Organization


@pytest.fixture(scope="session")
def test_db_url() -> str:
    """Get database URL for tests."""
    url = os.environ.get("TEST_DATABASE_URL")
    if not url:
        pytest.skip("TEST_DATABASE_URL not set")
    return url


@pytest_asyncio.fixture(scope="function")
async def db_engine(test_db_url: str):
    """Create async engine with a fresh schema."""
    engine = create_async_engine(test_db_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_sessionmaker(db_engine) -> async_sessionmaker[AsyncSession]:
    """Create session factory bound to the test engine."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(db_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    """Create async session for database tests."""
    async with db_sessionmaker() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def seeded_organizations(db_sessionmaker) -> dict[str, int]:
    """Insert two organizations and a branch, returning their IDs."""
    async with db_sessionmaker() as session:
        first = Organization(name="Northside Academy")
        second = Organization(name="Riverside School")
        session.add_all([first, second])
        await session.flush()

        branch = Branch(organization_id=first.id, name="Main Campus")
        session.add(branch)
        await session.commit()

        return {"first": first.id, "second": second.id, "branch": branch.id}
