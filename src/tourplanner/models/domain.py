"""Domain models for delivery clients and depots."""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union

OrderDate = Union[datetime, date, str]


@dataclass(slots=True, frozen=True)
class DeliveryClient:
    """A client awaiting delivery, as supplied by the caller."""

    name: str
    coordinate: tuple[float, float]
    weight_kg: float
    order_date: OrderDate
    id: Optional[str] = None
    urgent: bool = False


@dataclass(slots=True)
class TourPlanningRequest:
    """Clients to serve from ``depot`` with trucks of ``truck_capacity_kg``."""

    depot: tuple[float, float]
    clients: list[DeliveryClient]
    truck_capacity_kg: float
    desired_tour_count: int = 1
