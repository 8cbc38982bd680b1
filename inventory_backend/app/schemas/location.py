"""
Location Pydantic schemas.
"""

from pydantic import BaseModel, Field
from typing import List


class LocationCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)


class LocationResponse(BaseModel):
    id: int
    code: str
    name: str
    is_active: bool

    class Config:
        from_attributes = True


class LocationListResponse(BaseModel):
    locations: List[LocationResponse]
    total: int
