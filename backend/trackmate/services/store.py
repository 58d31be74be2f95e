"""TrackMate — TenantStore: every read and write goes through a TenantScope."""
import logging
from typing import Any, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from trackmate.core.exceptions import Conflict, EntityKind, NotFound
from trackmate.core.tenant import TenantScope
from trackmate.db.base import utcnow
from trackmate.models.company import Company

logger = logging.getLogger(__name__)

M = TypeVar("M")


class TenantStore:
    """
    Tenant-scoped persistence handle.

    The company filter and the soft-delete predicate are applied to every
    query unconditionally. Only a superuser scope may skip the company
    filter or ask for deleted rows.
    """

    def __init__(self, db: AsyncSession, scope: TenantScope):
        self.db = db
        self.scope = scope

    @property
    def company_id(self) -> int:
        return self.scope.company_id

    @property
    def actor(self) -> str:
        return self.scope.actor

    @staticmethod
    def _tenant_column(model):
        return model.id if model is Company else model.company_id

    def scoped(self, model, stmt, *, include_deleted: bool = False):
        """Apply tenant and soft-delete predicates to an arbitrary select."""
        if not self.scope.is_superuser:
            stmt = stmt.where(self._tenant_column(model) == self.scope.company_id)
        if not (include_deleted and self.scope.is_superuser):
            stmt = stmt.where(model.is_deleted.is_(False))
        return stmt

    def scoped_bookkeeping(self, model, stmt):
        """Tenant filter only. For engine bookkeeping that must still reach soft-deleted rows."""
        if not self.scope.is_superuser:
            stmt = stmt.where(self._tenant_column(model) == self.scope.company_id)
        return stmt

    async def find(
        self,
        model: type[M],
        entity_id: Any,
        *,
        for_update: bool = False,
        include_deleted: bool = False,
    ) -> M | None:
        stmt = self.scoped(model, select(model).where(model.id == entity_id), include_deleted=include_deleted)
        if for_update:
            # Row lock on PostgreSQL; SQLite relies on the version column instead
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get(
        self,
        model: type[M],
        entity_id: Any,
        *,
        for_update: bool = False,
        include_deleted: bool = False,
    ) -> M:
        entity = await self.find(model, entity_id, for_update=for_update, include_deleted=include_deleted)
        if entity is None:
            raise NotFound(model.__entity_kind__, entity_id)
        return entity

    async def get_many(self, model: type[M], entity_ids) -> dict[Any, M]:
        """Every id must resolve; the first one that doesn't raises NotFound."""
        wanted = list(dict.fromkeys(entity_ids))
        if not wanted:
            return {}
        found = {e.id: e for e in await self.list(model, model.id.in_(wanted))}
        for entity_id in wanted:
            if entity_id not in found:
                raise NotFound(model.__entity_kind__, entity_id)
        return found

    async def list(
        self,
        model: type[M],
        *criteria,
        order_by=None,
        page: int | None = None,
        page_size: int = 50,
        include_deleted: bool = False,
    ) -> list[M]:
        stmt = self.scoped(model, select(model).where(*criteria), include_deleted=include_deleted)
        stmt = stmt.order_by(order_by if order_by is not None else model.id)
        if page is not None:
            stmt = stmt.offset((page - 1) * page_size).limit(page_size)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count(self, model, *criteria, include_deleted: bool = False) -> int:
        stmt = self.scoped(model, select(func.count(model.id)).where(*criteria), include_deleted=include_deleted)
        return (await self.db.execute(stmt)).scalar_one()

    async def exists(self, model, *criteria) -> bool:
        return await self.count(model, *criteria) > 0

    def add(self, entity: M) -> M:
        """Stage a new tenant-owned entity, stamping company and audit fields."""
        if entity.company_id is None:
            entity.company_id = self.scope.company_id
        elif entity.company_id != self.scope.company_id and not self.scope.is_superuser:
            raise NotFound(EntityKind.COMPANY, entity.company_id)
        entity.is_deleted = False
        entity.created_at = utcnow()
        entity.created_by = self.scope.actor
        self.db.add(entity)
        return entity

    def touch(self, entity) -> None:
        entity.updated_at = utcnow()
        entity.updated_by = self.scope.actor

    async def soft_delete(self, model: type[M], entity_id: Any) -> M:
        entity = await self.get(model, entity_id, for_update=True)
        entity.is_deleted = True
        self.touch(entity)
        await self.flush()
        return entity

    async def flush(self) -> None:
        """Flush, turning version and uniqueness clashes into Conflict."""
        try:
            await self.db.flush()
        except StaleDataError as exc:
            logger.warning("Stale write for company %s by %s", self.company_id, self.actor)
            raise Conflict("concurrent modification detected") from exc
        except IntegrityError as exc:
            logger.warning("Integrity violation for company %s: %s", self.company_id, exc.orig)
            raise Conflict(f"integrity violation: {exc.orig}") from exc
