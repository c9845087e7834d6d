"""
Listing filter contract.

Every collection endpoint asks the engine for the accessible-id-set before it
touches storage, and applies exactly one of:

- ALL_RESOURCES    -> query unrestricted
- empty set        -> return an empty collection, no query
- non-empty set    -> query restricted to those ids

`resolve_accessible_ids` is the only sanctioned source of the filter set;
handlers never read role or grant fields themselves.
"""
from typing import Any, Sequence

from sqlalchemy import Select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from app.features.permissions.catalog import Module
from app.features.permissions.engine import ALL_RESOURCES, AccessibleIds, AuthorizationEngine, Principal


def restrict_to_accessible(
    stmt: Select,
    id_column: InstrumentedAttribute,
    accessible: AccessibleIds,
) -> Select | None:
    """
    Apply the accessible-id-set to a select statement.

    Returns None when nothing is visible; the caller must then return an
    empty collection without executing anything.
    """
    if accessible is ALL_RESOURCES:
        return stmt
    if not accessible:
        return None
    return stmt.where(id_column.in_(sorted(accessible)))


async def list_accessible(
    db: AsyncSession,
    engine: AuthorizationEngine,
    principal: Principal,
    module: Module,
    stmt: Select,
    id_column: InstrumentedAttribute,
) -> Sequence[Any]:
    """
    Run `stmt` under the listing contract for `module`.

    Usage:
        @router.get("")
        async def list_portfolios(...):
            stmt = select(Portfolio).order_by(Portfolio.name).offset(skip).limit(limit)
            return await list_accessible(db, engine, principal, Module.PORTFOLIO, stmt, Portfolio.id)
    """
    restricted = restrict_to_accessible(stmt, id_column, engine.resolve_accessible_ids(principal, module))
    if restricted is None:
        return []
    result = await db.execute(restricted)
    return result.scalars().all()
