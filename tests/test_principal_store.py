"""Tests for the SQLAlchemy principal repository (sqlite in memory)."""

import asyncio
import uuid

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.db import Base
from app.core.errors import ConflictError
from app.models.principal import Principal, PrincipalType
from app.services.principal_store import SqlPrincipalRepository


async def _roundtrip():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    sessions = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    principal_id = str(uuid.uuid4())
    async with sessions() as db:
        repo = SqlPrincipalRepository(db)
        await repo.put(Principal(
            id=principal_id,
            identifier="RSSMRA80A01H501U",
            principal_type=PrincipalType.individual,
            hashed_password="x",
            is_active=True,
            totp_enabled=False,
        ))

    async with sessions() as db:
        repo = SqlPrincipalRepository(db)
        found = await repo.find_by_identifier("RSSMRA80A01H501U")
        found.totp_secret = "aa:bb"
        found.totp_enabled = True
        await repo.put(found)

    async with sessions() as db:
        repo = SqlPrincipalRepository(db)
        loaded = await repo.get(principal_id)
        missing = await repo.find_by_identifier("nobody")

    await engine.dispose()
    return loaded, missing


def test_put_get_find():
    loaded, missing = asyncio.run(_roundtrip())
    assert loaded.identifier == "RSSMRA80A01H501U"
    assert loaded.totp_enabled is True
    assert loaded.totp_secret == "aa:bb"
    assert missing is None


def _principal(identifier: str) -> Principal:
    return Principal(
        id=str(uuid.uuid4()),
        identifier=identifier,
        principal_type=PrincipalType.individual,
        hashed_password="x",
        is_active=True,
        totp_enabled=False,
    )


async def _duplicate_identifier():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    sessions = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    async with sessions() as db:
        first = await SqlPrincipalRepository(db).put(_principal("RSSMRA80A01H501U"))

    # otro request que pasó el chequeo de find_by_identifier al mismo tiempo
    async with sessions() as db:
        repo = SqlPrincipalRepository(db)
        try:
            await repo.put(_principal("RSSMRA80A01H501U"))
        except ConflictError as exc:
            error = exc
        else:
            error = None
        # la sesión sigue usable después del rollback
        survivor = await repo.find_by_identifier("RSSMRA80A01H501U")

    await engine.dispose()
    return first, error, survivor


def test_put_duplicate_identifier_is_conflict():
    first, error, survivor = asyncio.run(_duplicate_identifier())
    assert isinstance(error, ConflictError)
    assert survivor.id == first.id
    assert first.totp_version == 0
