"""Delivery tour planning: local heuristic and solver-delegated variants."""

from .matrix import MatrixOutcome, RoutingService, TravelMatrix, build_fallback_matrix, build_matrix
from .models import (
    NormalizedClient,
    PlannedStop,
    PlannedTour,
    ScoringWeights,
    TourContext,
    TourPlanningLimits,
    TourPlanningOptions,
    TourPlanningResult,
)
from .planner import plan_delivery_tours, result_summary, validate_request
from .vrp import VRPPlannerOptions, VRPPlanningResult, plan_delivery_tours_vrp

__all__ = [
    "MatrixOutcome",
    "RoutingService",
    "TravelMatrix",
    "build_fallback_matrix",
    "build_matrix",
    "NormalizedClient",
    "PlannedStop",
    "PlannedTour",
    "ScoringWeights",
    "TourContext",
    "TourPlanningLimits",
    "TourPlanningOptions",
    "TourPlanningResult",
    "plan_delivery_tours",
    "result_summary",
    "validate_request",
    "VRPPlannerOptions",
    "VRPPlanningResult",
    "plan_delivery_tours_vrp",
]
