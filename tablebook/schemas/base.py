"""
Base schemas shared by request and response DTOs.
"""

from pydantic import BaseModel, ConfigDict


class StandardizedModel(BaseModel):
    """Response base: reads ORM rows and serialises enums by value."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True, populate_by_name=True)


class StrictRequestModel(BaseModel):
    """Request DTO base that always forbids unexpected fields."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class MessageResponse(StandardizedModel):
    success: bool = True
    message: str
