"""Shared test fixtures for the KoiHire test suite.

Provides:
    - An in-memory SQLite database (schema from the ORM metadata)
    - An ASGI test client with the session, processor and proxy dependencies
      swapped for test doubles
    - Async test support via pytest-asyncio

Data factories live in tests/factories.py.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from koihire.api.deps import get_db_session, get_payment_service, get_proxy_service
from koihire.infrastructure.database.orm_models import Base
from koihire.main import create_app
from koihire.services.payment_service import PaymentService
from koihire.services.proxy_service import ProxyService

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from fastapi import FastAPI
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """A fresh in-memory database per test. StaticPool keeps one connection alive."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def simulated_payments() -> PaymentService:
    return PaymentService(simulate=True)


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


def upstream_handler(request: httpx.Request) -> httpx.Response:
    """Stand-in for the file store and the applications API."""
    path = request.url.path
    if path == "/uploads/avatars/koi.png":
        return httpx.Response(200, content=b"\x89PNG-bytes", headers={"content-type": "image/png"})
    if path == "/uploads/raw/blob":
        return httpx.Response(200, content=b"raw")
    if path.startswith("/api/applications/project/"):
        return httpx.Response(
            200,
            json={
                "success": True,
                "data": {
                    "auth": request.headers.get("authorization"),
                    "query": request.url.query.decode("ascii"),
                },
            },
        )
    return httpx.Response(404, text="missing")


@pytest.fixture
def app(session_factory: async_sessionmaker[AsyncSession]) -> FastAPI:
    application = create_app()

    async def _session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db_session] = _session
    application.dependency_overrides[get_payment_service] = lambda: PaymentService(simulate=True)
    application.dependency_overrides[get_proxy_service] = lambda: ProxyService(
        transport=httpx.MockTransport(upstream_handler)
    )
    return application


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
