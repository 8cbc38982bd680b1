"""
Location resolver.

Translates between location display names and the codes ledger partitions
are keyed by. Owned outside the ledger engine; the engine only sees codes.
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_

from inventory_backend.app.models.location import Location
from inventory_backend.app.core.exceptions import ResourceNotFoundError


async def resolve_location_code(db: AsyncSession, code_or_name: str) -> str:
    """
    Resolve a location code from either its code or its display name.

    Raises:
        ResourceNotFoundError: If no active location matches
    """
    result = await db.execute(
        select(Location).where(
            or_(Location.code == code_or_name, Location.name == code_or_name),
            Location.is_active == True
        )
    )
    location = result.scalars().first()

    if not location:
        raise ResourceNotFoundError("Location", code_or_name)

    return location.code


async def get_location_name(db: AsyncSession, code: str) -> Optional[str]:
    result = await db.execute(select(Location.name).where(Location.code == code))
    return result.scalar_one_or_none()


async def list_locations(db: AsyncSession) -> list[Location]:
    result = await db.execute(
        select(Location).where(Location.is_active == True).order_by(Location.code)
    )
    return result.scalars().all()


async def create_location(db: AsyncSession, code: str, name: str) -> Location:
    location = Location(code=code, name=name, is_active=True)
    db.add(location)
    await db.flush()
    return location
