"""Service models for the barbershop service catalog."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from utils.constants import MAX_SERVICE_DURATION_MINUTES, MIN_SERVICE_DURATION_MINUTES


class Service(BaseModel):
    """
    Service offered by a barbershop.

    The catalog itself is edited elsewhere; the engine only reads the
    duration and price, and snapshots both onto each appointment.
    """

    id: str
    barbershop_id: Optional[str] = None
    name: str
    duration_minutes: int = Field(
        ...,
        ge=MIN_SERVICE_DURATION_MINUTES,
        le=MAX_SERVICE_DURATION_MINUTES,
        validation_alias="duration",
        description="Duration in minutes; need not be a multiple of the slot grid",
    )
    price: Decimal = Field(default=Decimal("0"), ge=0)
    active: bool = True

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "uuid-here",
                "barbershop_id": "uuid-here",
                "name": "Haircut",
                "duration": 45,
                "price": "50.00",
            }
        },
    )
