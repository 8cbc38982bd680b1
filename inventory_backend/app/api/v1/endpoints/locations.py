"""
Location API Endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_

from inventory_backend.app.db.session import get_db
from inventory_backend.app.core.dependencies import get_current_actor
from inventory_backend.app.domain.ledger.types import Actor
from inventory_backend.app.models.location import Location
from inventory_backend.app.schemas.location import LocationCreate, LocationResponse, LocationListResponse
from inventory_backend.app.services.audit import log_event, AuditAction
from inventory_backend.app.services.locations import list_locations, create_location

router = APIRouter(prefix="/locations", tags=["Locations"])


@router.get("", response_model=LocationListResponse)
async def get_locations(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    locations = await list_locations(db)
    return LocationListResponse(
        locations=[LocationResponse.model_validate(loc) for loc in locations],
        total=len(locations)
    )


@router.post("", response_model=LocationResponse, status_code=status.HTTP_201_CREATED)
async def add_location(
    location_data: LocationCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Register a location; code and name must both be unique."""
    existing = await db.execute(
        select(Location).where(
            or_(Location.code == location_data.code, Location.name == location_data.name)
        )
    )
    if existing.scalars().first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Location code or name already registered"
        )

    location = await create_location(db, location_data.code, location_data.name)
    await log_event(
        db=db,
        action=AuditAction.LOCATION_CREATED,
        actor_id=actor.user_id,
        actor_username=actor.username,
        location_code=location.code,
        metadata={"name": location.name}
    )
    await db.commit()
    await db.refresh(location)

    return LocationResponse.model_validate(location)
