from typing import List
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from siteplan.api.schemas import (
    ActivitiesRequest,
    CrashingRequest,
    CriticalPathResponse,
    LevelRequest,
    LevelingResponse,
    OptimizationActionDTO,
    OptimizationResponse,
    OptimizeRequest,
    ProjectOptimizeRequest,
    ScenarioResultDTO,
    WhatIfRequest,
)
from siteplan.config.settings import get_settings
from siteplan.engine.compression import analyze_fast_tracking_opportunities, analyze_schedule_crashing
from siteplan.engine.critical_path import calculate_critical_path
from siteplan.engine.leveling import level_resources
from siteplan.engine.optimizer import optimize_schedule
from siteplan.engine.what_if import analyze_what_if_scenarios
from siteplan.storage.cache import OptimizationCache
from siteplan.storage.database import get_db
from siteplan.storage.repositories import ActivityRepository, EquipmentRepository, WorkforceRepository

router = APIRouter()
settings = get_settings()
logger = logging.getLogger(__name__)


def get_cache() -> OptimizationCache:
    return OptimizationCache()


@router.post("/schedule/critical-path", response_model=CriticalPathResponse, summary="Critical path analysis")
def critical_path(req: ActivitiesRequest):
    """
    Run CPM over the supplied activities.

    **Returns:** critical activity ids, total/free float and criticality index
    per activity, near-critical groups and early/late dates.

    **Error Handling:**
    - 400: Invalid activities (duplicate ids, self-dependency)
    - 422: Predecessor cycle, or malformed request body
    """
    logger.info(f"Critical path request: {len(req.activities)} activities")
    analysis = calculate_critical_path([a.to_domain() for a in req.activities])
    return CriticalPathResponse.model_validate(analysis)


@router.post("/schedule/optimize", response_model=OptimizationResponse, summary="Optimize schedule")
def optimize(req: OptimizeRequest):
    """
    Generate alternative schedules, score them against the objective weights
    and constraints, and return the best feasible one with the actions and
    risks it implies.

    **Error Handling:**
    - 400: Zero-sum objective weights, non-positive ceilings, invalid activities
    - 422: Predecessor cycle, or malformed request body
    """
    logger.info(f"Optimize request: {len(req.activities)} activities")
    result = optimize_schedule(
        [a.to_domain() for a in req.activities],
        req.objective.to_domain(),
        req.constraints.to_domain(),
    )
    return OptimizationResponse.from_domain(result)


@router.post(
    "/projects/{project_id}/schedule/optimize",
    response_model=OptimizationResponse,
    summary="Optimize a stored project schedule",
)
def optimize_project(
    project_id: str,
    req: ProjectOptimizeRequest,
    db: Session = Depends(get_db),
    cache: OptimizationCache = Depends(get_cache),
):
    """
    Load the project's activities, workforce and equipment from the database
    and optimize. Workforce and equipment in the request take precedence
    over stored records.

    Results are cached in redis when ``CACHE_ENABLED`` is set; the cache key
    hashes the loaded project data together with the request.
    """
    activities = ActivityRepository(db).list_by_project(project_id)
    if not activities:
        raise HTTPException(status_code=404, detail=f"Project {project_id} has no activities")

    constraints = req.constraints.to_domain()
    if not constraints.available_workforce and not constraints.available_equipment:
        constraints = constraints.with_resources(
            WorkforceRepository(db).list_by_project(project_id),
            EquipmentRepository(db).list_by_project(project_id),
        )
    logger.info(
        f"Project {project_id}: {len(activities)} activities, "
        f"{len(constraints.available_workforce)} workers, {len(constraints.available_equipment)} equipment"
    )

    request_hash = None
    if settings.cache_enabled:
        request_hash = OptimizationCache.hash_request({
            "project": project_id,
            "activities": [repr(a) for a in activities],
            "workforce": [repr(w) for w in constraints.available_workforce],
            "equipment": [repr(e) for e in constraints.available_equipment],
            "request": req.model_dump(mode="json"),
        })
        cached = cache.get(request_hash)
        if cached:
            logger.info("Cache hit")
            return OptimizationResponse.model_validate({**cached, "cached": True})

    result = optimize_schedule(activities, req.objective.to_domain(), constraints)
    response = OptimizationResponse.from_domain(result)

    if request_hash is not None:
        cache.set(request_hash, response.model_dump(mode="json"))
    return response


@router.post("/schedule/level", response_model=LevelingResponse, summary="Level resources")
def level(req: LevelRequest):
    """
    Smooth resource peaks within float, then schedule against per-type
    capacity. ``availableResources`` maps resource type to units; when
    omitted every type gets the default capacity.
    """
    logger.info(f"Level request: {len(req.activities)} activities")
    result = level_resources([a.to_domain() for a in req.activities], req.available_resources)
    return LevelingResponse.from_domain(result)


@router.post("/schedule/fast-tracking", response_model=List[OptimizationActionDTO], summary="Fast-tracking opportunities")
def fast_tracking(req: ActivitiesRequest):
    """One action per finish-to-start pair, highest priority first."""
    actions = analyze_fast_tracking_opportunities([a.to_domain() for a in req.activities])
    return [OptimizationActionDTO.model_validate(a) for a in actions]


@router.post("/schedule/crashing", response_model=List[OptimizationActionDTO], summary="Crashing options")
def crashing(req: CrashingRequest):
    """Three crashing options per critical activity, highest priority first."""
    actions = analyze_schedule_crashing([a.to_domain() for a in req.activities], req.target_reduction_days)
    return [OptimizationActionDTO.model_validate(a) for a in actions]


@router.post("/schedule/what-if", response_model=List[ScenarioResultDTO], summary="What-if scenarios")
def what_if(req: WhatIfRequest):
    """Apply each scenario to the baseline and report its impact."""
    logger.info(f"What-if request: {len(req.scenarios)} scenarios")
    results = analyze_what_if_scenarios(
        [a.to_domain() for a in req.activities],
        [s.to_domain() for s in req.scenarios],
        req.available_resources,
    )
    return [ScenarioResultDTO.model_validate(r) for r in results]
