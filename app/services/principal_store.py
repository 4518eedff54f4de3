"""Acceso a principals detrás de una interfaz chica (get / put / find_by_identifier)."""
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError
from app.models.principal import Principal


class PrincipalRepository(Protocol):
    async def get(self, principal_id: str) -> Principal | None: ...

    async def put(self, principal: Principal) -> Principal: ...

    async def find_by_identifier(self, identifier: str) -> Principal | None: ...


class SqlPrincipalRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, principal_id: str) -> Principal | None:
        res = await self.db.execute(select(Principal).where(Principal.id == principal_id))
        return res.scalar_one_or_none()

    async def put(self, principal: Principal) -> Principal:
        try:
            principal = await self.db.merge(principal)
            await self.db.commit()
        except IntegrityError:
            # dos registros concurrentes con el mismo identifier: gana el primero
            await self.db.rollback()
            raise ConflictError()
        await self.db.refresh(principal)
        return principal

    async def find_by_identifier(self, identifier: str) -> Principal | None:
        res = await self.db.execute(select(Principal).where(Principal.identifier == identifier))
        return res.scalar_one_or_none()


class InMemoryPrincipalRepository:
    """Sin I/O. Útil para tests y para levantar la API sin base."""

    def __init__(self):
        self._by_id: dict[str, Principal] = {}

    async def get(self, principal_id: str) -> Principal | None:
        return self._by_id.get(principal_id)

    async def put(self, principal: Principal) -> Principal:
        other = await self.find_by_identifier(principal.identifier)
        if other is not None and other.id != principal.id:
            raise ConflictError()
        self._by_id[principal.id] = principal
        return principal

    async def find_by_identifier(self, identifier: str) -> Principal | None:
        for principal in self._by_id.values():
            if principal.identifier == identifier:
                return principal
        return None
