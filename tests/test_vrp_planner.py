from datetime import datetime, timezone

import pytest

from tourplanner.models.domain import DeliveryClient, TourPlanningRequest
from tourplanner.services.tours import VRPPlannerOptions, plan_delivery_tours_vrp
from tourplanner.services.tours.vrp import job_priority

DEPOT = (8.68, 49.41)
REFERENCE = datetime(2024, 1, 20, tzinfo=timezone.utc)


class FakeOptimizer:
    def __init__(self, response):
        self.response = response
        self.payloads = []

    async def optimization(self, request, options=None):
        self.payloads.append(request)
        if isinstance(self.response, BaseException):
            raise self.response
        return self.response


def _request(desired_tour_count: int = 2) -> TourPlanningRequest:
    return TourPlanningRequest(
        depot=DEPOT,
        truck_capacity_kg=1_000.4,
        desired_tour_count=desired_tour_count,
        clients=[
            DeliveryClient(id="bakery", name="Bakery", coordinate=(8.69, 49.42), weight_kg=300, order_date="2024-01-10"),
            DeliveryClient(
                id="pharmacy",
                name="Pharmacy",
                coordinate=(8.70, 49.40),
                weight_kg=150.5,
                order_date="2024-01-18",
                urgent=True,
            ),
            DeliveryClient(id="garage", name="Garage", coordinate=(8.60, 49.50), weight_kg=900, order_date="2024-01-19"),
        ],
    )


SOLUTION = {
    "code": 0,
    "summary": {"cost": 812, "distance": 6_000, "duration": 900},
    "unassigned": [{"id": 3, "location": [8.60, 49.50]}],
    "routes": [
        {
            "vehicle": 1,
            "distance": 6_000,
            "duration": 900,
            "steps": [
                {"type": "start", "location": list(DEPOT), "distance": 0},
                {"type": "job", "job": 1, "location": [8.69, 49.42], "distance": 1_500},
                {"type": "job", "job": 2, "location": [8.70, 49.40], "distance": 4_000},
                {"type": "end", "location": list(DEPOT), "distance": 6_000},
            ],
        }
    ],
}


def test_job_priority_drops_with_age_and_urgency():
    options = VRPPlannerOptions()

    assert job_priority(0, False, options) == 60
    assert job_priority(10, False, options) == 40
    assert job_priority(10, True, options) == 15
    assert job_priority(400, True, options) == 1


@pytest.mark.anyio
async def test_solver_routes_become_tours_and_dropped_jobs_are_unassigned():
    optimizer = FakeOptimizer(SOLUTION)

    result = await plan_delivery_tours_vrp(
        optimizer, _request(), VRPPlannerOptions(profile="driving-car", reference_date=REFERENCE)
    )

    payload = optimizer.payloads[0]
    assert len(payload["vehicles"]) == 2
    assert payload["vehicles"][0]["capacity"] == [1_000]
    assert payload["vehicles"][0]["start"] == list(DEPOT)
    assert [job["amount"] for job in payload["jobs"]] == [[300], [151], [900]]
    assert payload["jobs"][1]["skills"] == [1]
    assert "skills" not in payload["jobs"][0]

    assert len(result.tours) == 1
    tour = result.tours[0]
    assert tour.id == "vrp_tour_1"
    assert [stop.id for stop in tour.stops] == ["bakery", "pharmacy"]
    assert [stop.insertion_cost_km for stop in tour.stops] == pytest.approx([1.5, 2.5])
    assert tour.total_weight_kg == pytest.approx(450.5)
    assert tour.estimated_distance_km == pytest.approx(6.0)
    assert tour.estimated_duration_min == pytest.approx(15.0)
    assert tour.route_geojson["features"][0]["geometry"]["coordinates"][0] == list(DEPOT)

    assert [client.id for client in result.unassigned] == ["garage"]
    assert result.warnings == ['Client "Garage" remains unassigned by the solver.']
    assert result.solver.vehicles_requested == 2
    assert result.solver.vehicles_used == 1
    assert result.solver.cost == 812


@pytest.mark.anyio
async def test_vehicle_count_is_clamped_to_optimization_limit():
    optimizer = FakeOptimizer({"routes": []})

    result = await plan_delivery_tours_vrp(optimizer, _request(desired_tour_count=5), VRPPlannerOptions(reference_date=REFERENCE))

    assert len(optimizer.payloads[0]["vehicles"]) == 3
    assert result.warnings[0] == "Requested 5 vehicles but optimization limit is 3. Using 3 vehicle(s)."
    # nothing routed and nothing reported back: every client is flagged
    assert len(result.unassigned) == 3
    assert all("no assigned route" in warning for warning in result.warnings[1:])


@pytest.mark.anyio
async def test_solver_failure_raises_runtime_error():
    optimizer = FakeOptimizer(ConnectionError("solver offline"))

    with pytest.raises(RuntimeError, match="ORS optimization failed: solver offline"):
        await plan_delivery_tours_vrp(optimizer, _request(), VRPPlannerOptions(reference_date=REFERENCE))


@pytest.mark.anyio
async def test_invalid_clients_are_rejected_before_the_solver_is_called():
    optimizer = FakeOptimizer(SOLUTION)
    empty = TourPlanningRequest(depot=DEPOT, clients=[], truck_capacity_kg=100)
    weightless = TourPlanningRequest(
        depot=DEPOT,
        truck_capacity_kg=100,
        clients=[DeliveryClient(id="ghost", name="Ghost", coordinate=(8.69, 49.42), weight_kg=0, order_date="2024-01-01")],
    )

    with pytest.raises(ValueError, match="At least one client is required to plan tours."):
        await plan_delivery_tours_vrp(optimizer, empty)
    with pytest.raises(ValueError, match='Client "ghost" must have a positive weight_kg.'):
        await plan_delivery_tours_vrp(optimizer, weightless)
    assert optimizer.payloads == []
