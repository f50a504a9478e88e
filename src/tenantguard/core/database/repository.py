"""Generic tenant-scoped repository.

``ScopedRepository`` is the data-access surface for every tenant-owned
model. Each statement it builds carries an explicit
``<model>.tenant_id == <active tenant>`` predicate for the primary model
and for every joined tenant-owned model (placed in the join's ON
clause), in addition to the loader criteria added by the session-level
enforcer.

Records of other tenants are reported exactly like missing records.

Usage:
    class LeadRepository(ScopedRepository[Lead]):
        model = Lead

    repo = LeadRepository(session)
    lead = await repo.create({"title": "Website redesign"})
    page = await repo.paginate(page=2, order_by=Lead.created_at.desc())
"""

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import structlog
from sqlalchemy import ColumnElement, Select, and_, delete, func, select
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from tenantguard.core.database.base import Base, is_tenant_owned
from tenantguard.core.errors import (
    ImmutableFieldError,
    ScopedNotFoundError,
    ValidationError,
)
from tenantguard.core.tenancy.context import is_unscoped, require_tenant_id


ModelT = TypeVar("ModelT", bound=Base)

logger = structlog.get_logger()


@dataclass(frozen=True)
class Join:
    """A join from the repository's model to another entity.

    Attributes:
        target: Mapped class or alias to join
        onclause: Join condition (the tenant predicate is added automatically)
        outer: Use a LEFT OUTER JOIN
    """

    target: Any
    onclause: ColumnElement[bool]
    outer: bool = False


@dataclass
class Page(Generic[ModelT]):
    """One page of results plus the total row count."""

    items: list[ModelT]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        """Total number of pages."""
        return math.ceil(self.total / self.page_size) if self.total else 0

    @property
    def has_next(self) -> bool:
        """Whether a following page exists."""
        return self.page < self.pages


def _is_owned_entity(entity: Any) -> bool:
    info = sa_inspect(entity, raiseerr=False)
    mapper = getattr(info, "mapper", None)
    return mapper is not None and is_tenant_owned(mapper.class_)


def tenant_predicates(*entities: Any) -> list[ColumnElement[bool]]:
    """Build ``tenant_id == active`` predicates for the tenant-owned entities.

    Args:
        *entities: Mapped classes or aliases taking part in a statement

    Returns:
        One predicate per tenant-owned entity; empty while unscoped

    Raises:
        NoActiveContextError: If no tenant is active and no bypass is running
    """
    if is_unscoped():
        return []
    tenant_id = require_tenant_id()
    return [entity.tenant_id == tenant_id for entity in entities if _is_owned_entity(entity)]


class ScopedRepository(Generic[ModelT]):
    """CRUD and bulk operations on one tenant-owned model.

    Subclasses set ``model``; a model can also be passed directly.

    Attributes:
        model: The tenant-owned mapped class
        session: The unit-of-work session
    """

    model: type[ModelT]

    def __init__(self, session: AsyncSession, model: type[ModelT] | None = None) -> None:
        if model is not None:
            self.model = model
        if not is_tenant_owned(self.model):
            raise TypeError(f"{self.model.__name__} is not a tenant-owned model")
        self.session = session

    # ============================================================
    # Statement building
    # ============================================================

    def _filters(self, filters: Mapping[str, Any]) -> list[ColumnElement[bool]]:
        self._check_attributes(filters)
        return [getattr(self.model, key) == value for key, value in filters.items()]

    def _check_attributes(self, attrs: Mapping[str, Any]) -> None:
        known = set(sa_inspect(self.model).attrs.keys())
        unknown = sorted(set(attrs) - known)
        if unknown:
            raise ValidationError(
                f"Unknown attributes for {self.model.__name__}",
                errors=[{"field": key, "message": "Unknown attribute"} for key in unknown],
            )

    def select(
        self,
        *criteria: ColumnElement[bool],
        joins: Sequence[Join] = (),
        **filters: Any,
    ) -> Select[tuple[ModelT]]:
        """Build a scoped SELECT for the model.

        Args:
            *criteria: Extra WHERE criteria
            joins: Joins to other entities; tenant-owned targets are scoped too
            **filters: Equality filters on model attributes

        Returns:
            The scoped statement
        """
        stmt = select(self.model)
        for join in joins:
            onclause = and_(join.onclause, *tenant_predicates(join.target))
            stmt = stmt.join(join.target, onclause, isouter=join.outer)
        if joins:
            stmt = stmt.distinct()
        return stmt.where(
            *tenant_predicates(self.model),
            *criteria,
            *self._filters(filters),
        )

    # ============================================================
    # Reads
    # ============================================================

    async def find(self, record_id: Any) -> ModelT | None:
        """Get a record by ID within the active tenant.

        Args:
            record_id: Primary identifier of the record

        Returns:
            The record, or None if absent or owned by another tenant
        """
        result = await self.session.execute(self.select(self.model.id == record_id))
        return result.scalar_one_or_none()

    async def get(self, record_id: Any) -> ModelT:
        """Get a record by ID within the active tenant.

        Raises:
            ScopedNotFoundError: If absent or owned by another tenant
        """
        record = await self.find(record_id)
        if record is None:
            raise ScopedNotFoundError(
                f"{self.model.__name__} not found",
                resource=self.model.__tablename__,
                resource_id=str(record_id),
            )
        return record

    async def find_by(
        self,
        *criteria: ColumnElement[bool],
        joins: Sequence[Join] = (),
        order_by: Any | None = None,
        limit: int | None = None,
        **filters: Any,
    ) -> list[ModelT]:
        """List records matching the criteria and equality filters."""
        stmt = self.select(*criteria, joins=joins, **filters)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_one_by(
        self,
        *criteria: ColumnElement[bool],
        joins: Sequence[Join] = (),
        **filters: Any,
    ) -> ModelT | None:
        """Return the first record matching the criteria, if any."""
        records = await self.find_by(*criteria, joins=joins, limit=1, **filters)
        return records[0] if records else None

    async def list_all(
        self,
        *criteria: ColumnElement[bool],
        joins: Sequence[Join] = (),
        order_by: Any | None = None,
    ) -> list[ModelT]:
        """List every record of the active tenant."""
        return await self.find_by(*criteria, joins=joins, order_by=order_by)

    async def list_joined(
        self,
        target: Any,
        onclause: ColumnElement[bool],
        *criteria: ColumnElement[bool],
        order_by: Any | None = None,
    ) -> list[tuple[ModelT, Any]]:
        """List (record, joined row) pairs.

        Both sides are restricted to the active tenant, so a join key that
        matches across tenants never produces a pair.

        Args:
            target: Mapped class or alias to join
            onclause: Join condition
            *criteria: Extra WHERE criteria
            order_by: Optional ordering

        Returns:
            List of (model instance, target instance) tuples
        """
        stmt = (
            select(self.model, target)
            .join(target, and_(onclause, *tenant_predicates(target)))
            .where(*tenant_predicates(self.model), *criteria)
        )
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        result = await self.session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def count(
        self,
        *criteria: ColumnElement[bool],
        joins: Sequence[Join] = (),
        **filters: Any,
    ) -> int:
        """Count records of the active tenant matching the criteria."""
        subquery = self.select(*criteria, joins=joins, **filters).subquery()
        result = await self.session.execute(select(func.count()).select_from(subquery))
        return result.scalar_one()

    async def paginate(
        self,
        *criteria: ColumnElement[bool],
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        order_by: Any | None = None,
        joins: Sequence[Join] = (),
        **filters: Any,
    ) -> Page[ModelT]:
        """Return one page of records.

        Args:
            *criteria: Extra WHERE criteria
            page: 1-based page number
            page_size: Page size, clamped to ``MAX_PAGE_SIZE``
            order_by: Ordering; defaults to the primary key
            joins: Joins to other entities
            **filters: Equality filters on model attributes

        Returns:
            The requested page
        """
        page = max(page, 1)
        page_size = min(max(page_size, 1), MAX_PAGE_SIZE)

        total = await self.count(*criteria, joins=joins, **filters)
        stmt = (
            self.select(*criteria, joins=joins, **filters)
            .order_by(order_by if order_by is not None else self.model.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.session.execute(stmt)
        return Page(
            items=list(result.scalars().all()),
            total=total,
            page=page,
            page_size=page_size,
        )

    # ============================================================
    # Writes
    # ============================================================

    async def create(self, attrs: Mapping[str, Any] | None = None, **kwargs: Any) -> ModelT:
        """Create a record stamped with the active tenant.

        Args:
            attrs: Attribute values
            **kwargs: Additional attribute values

        Returns:
            The flushed record

        Raises:
            NoActiveContextError: If no tenant is active and none is given
        """
        data = {**(attrs or {}), **kwargs}
        self._check_attributes(data)
        record = self.model(**data)
        self.session.add(record)
        await self.session.flush()
        return record

    async def create_for(self, tenant_id: int, attrs: Mapping[str, Any]) -> ModelT:
        """Create a record for an explicit tenant (administrative path).

        The explicit tenant wins over the ambient context.
        """
        logger.info(
            "record_created_for_tenant",
            model=self.model.__name__,
            tenant_id=tenant_id,
        )
        return await self.create({**attrs, "tenant_id": tenant_id})

    async def update(self, record_id: Any, attrs: Mapping[str, Any]) -> ModelT:
        """Update a record of the active tenant.

        Args:
            record_id: Primary identifier of the record
            attrs: Attribute values to change

        Returns:
            The updated record

        Raises:
            ScopedNotFoundError: If absent or owned by another tenant
            ImmutableFieldError: If ``tenant_id`` would change
        """
        record = await self.get(record_id)
        changes = dict(attrs)
        if "tenant_id" in changes:
            if changes["tenant_id"] != record.tenant_id:
                raise ImmutableFieldError(
                    "tenant_id cannot be changed once a record is persisted",
                    details={"model": self.model.__name__},
                )
            del changes["tenant_id"]
        self._check_attributes(changes)

        for key, value in changes.items():
            setattr(record, key, value)
        await self.session.flush()
        return record

    async def delete(self, record_id: Any) -> None:
        """Delete a record of the active tenant.

        Raises:
            ScopedNotFoundError: If absent or owned by another tenant
        """
        record = await self.get(record_id)
        await self.session.delete(record)
        await self.session.flush()

    async def delete_where(self, *criteria: ColumnElement[bool], **filters: Any) -> int:
        """Delete every record of the active tenant matching the criteria.

        Returns:
            Number of deleted rows
        """
        stmt = delete(self.model).where(
            *tenant_predicates(self.model),
            *criteria,
            *self._filters(filters),
        )
        result = await self.session.execute(stmt)
        return result.rowcount
