"""Turn caller-supplied delivery clients into per-run planning records."""

from __future__ import annotations

import math
from datetime import date, datetime, timezone
from typing import Any, Iterable, Sequence

from ...models.domain import DeliveryClient
from ..geospatial import LonLat, haversine_km
from .models import NormalizedClient

SECONDS_PER_DAY = 86_400


def normalize_coordinate(value: Any, label: str) -> LonLat:
    if not isinstance(value, (list, tuple)) or len(value) < 2:
        raise ValueError(f"{label} must be a [lon, lat] pair.")
    try:
        lon = float(value[0])
        lat = float(value[1])
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{label} must contain finite coordinates.") from exc
    if not math.isfinite(lon) or not math.isfinite(lat):
        raise ValueError(f"{label} must contain finite coordinates.")
    return lon, lat


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_order_date(value: Any, client_id: str) -> datetime:
    """Accept ``datetime``, ``date`` or ISO-8601 text; naive values are read as UTC."""

    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = f"{text[:-1]}+00:00"
        try:
            return _as_utc(datetime.fromisoformat(text))
        except ValueError as exc:
            raise ValueError(f'Invalid order_date for client "{client_id}".') from exc
    raise ValueError(f'Invalid order_date for client "{client_id}".')


def _positive_weight(value: Any, client_id: str) -> float:
    try:
        weight = float(value)
    except (TypeError, ValueError):
        weight = math.nan
    if not math.isfinite(weight) or weight <= 0:
        raise ValueError(f'Client "{client_id}" must have a positive weight_kg.')
    return weight


def normalize_client(
    client: DeliveryClient,
    index: int,
    depot: LonLat,
    reference_date: datetime,
    average_speed_kmh: float,
) -> NormalizedClient:
    client_id = client.id or f"client_{index + 1}"
    coordinate = normalize_coordinate(client.coordinate, f"Client {client_id} coordinate")
    order_date = parse_order_date(client.order_date, client_id)
    weight_kg = _positive_weight(client.weight_kg, client_id)
    if (
        isinstance(average_speed_kmh, bool)
        or not isinstance(average_speed_kmh, (int, float))
        or not math.isfinite(average_speed_kmh)
        or average_speed_kmh <= 0
    ):
        raise ValueError("average_speed_kmh must be a positive number.")

    age_seconds = max(0.0, (_as_utc(reference_date) - order_date).total_seconds())
    distance_km = haversine_km(depot, coordinate)
    return NormalizedClient(
        id=client_id,
        name=client.name,
        coordinate=coordinate,
        weight_kg=weight_kg,
        order_date=order_date,
        urgent=bool(client.urgent),
        age_days=age_seconds / SECONDS_PER_DAY,
        distance_from_depot_km=distance_km,
        duration_from_depot_min=distance_km / average_speed_kmh * 60,
        matrix_index=index + 1,
    )


def normalize_clients(
    clients: Sequence[DeliveryClient] | Iterable[DeliveryClient],
    depot: LonLat,
    reference_date: datetime,
    average_speed_kmh: float,
) -> list[NormalizedClient]:
    normalized = [
        normalize_client(client, index, depot, reference_date, average_speed_kmh)
        for index, client in enumerate(clients)
    ]
    seen: set[str] = set()
    for client in normalized:
        if client.id in seen:
            raise ValueError(f'Duplicate client id "{client.id}".')
        seen.add(client.id)
    return normalized
