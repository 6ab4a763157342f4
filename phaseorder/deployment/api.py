"""
deployment/api.py - HTTP surface for phase ordering

Provides:
- GET    /api/v1/projects/{project_id}/phases
- POST   /api/v1/projects/{project_id}/phases
- POST   /api/v1/projects/{project_id}/phases/incorporate
- GET    /api/v1/projects/{project_id}/phases/positions
- POST   /api/v1/projects/{project_id}/phases/{phase_id}/move
- POST   /api/v1/projects/{project_id}/phases/{phase_id}/move-up
- POST   /api/v1/projects/{project_id}/phases/{phase_id}/move-down
- DELETE /api/v1/projects/{project_id}/phases/{phase_id}
- POST   /api/v1/projects/{project_id}/seed
- POST   /api/v1/projects/{project_id}/recover
- GET    /api/v1/projects/{project_id}/history
- GET    /api/v1/template
"""

from __future__ import annotations
from typing import Any, Dict, Optional, Union
import logging

from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from phaseorder.bootstrap.config import PhaseOrderConfig, get_config
from phaseorder.errors.aggregator import AnomalyAggregator
from phaseorder.errors.exceptions import CommitError, LoadError
from phaseorder.errors.taxonomy import ErrorCode
from phaseorder.planning.naming import available_positions
from phaseorder.providers.json_store import JsonFilePhaseStore
from phaseorder.providers.memory import InMemoryPhaseStore
from phaseorder.providers.protocols import PersistenceAdapter, TemplateProvider
from phaseorder.session.registry import ServiceRegistry
from phaseorder.session.service import OperationResult

__all__ = [
    'create_phases_router',
    'create_app',
    'PhaseCreate',
    'PhaseIncorporate',
    'PhaseMove',
]

logger = logging.getLogger("deployment.api")


# =============================================================================
# REQUEST MODELS
# =============================================================================

class PhaseCreate(BaseModel):
    """Add a phase; the name defaults to the next free "New Phase N"."""
    name: Optional[str] = Field(None, description="Phase name")
    phase_id: Optional[str] = Field(None, description="Client-chosen phase id")


class PhaseIncorporate(BaseModel):
    """Link a phase from another project."""
    name: str = Field(..., description="Phase name")
    source_project_id: str = Field(..., description="Project the phase comes from")
    source_phase_id: str = Field(..., description="Phase id in the source project")
    phase_id: Optional[str] = Field(None, description="Id in this project")


class PhaseMove(BaseModel):
    """Move target: a 1-based index, or "First" / "Last"."""
    position: Union[int, str] = Field(..., description="Target position")


REJECTION_STATUS: Dict[ErrorCode, int] = {
    ErrorCode.UNKNOWN_PHASE: 404,
    ErrorCode.LOCKED_PHASE: 403,
    ErrorCode.NAME_COLLISION: 409,
    ErrorCode.DUPLICATE_ID: 409,
    ErrorCode.OPERATION_IN_PROGRESS: 409,
    ErrorCode.OUT_OF_RANGE: 422,
    ErrorCode.INVALID_OFFSET: 422,
    ErrorCode.COMMIT_FAILED: 500,
    ErrorCode.LOAD_FAILED: 503,
}


def _respond(result: OperationResult) -> Dict[str, Any]:
    """OperationResult as a response body, or an HTTPException for a rejection."""
    if result.success:
        return result.to_dict()

    rejection = result.rejection
    raise HTTPException(
        status_code=REJECTION_STATUS.get(rejection.code, 400),
        detail={
            "code": rejection.code.name,
            "message": rejection.message,
            "user_message": rejection.user_message,
            "phases": [p.to_dict() for p in result.phases],
        },
    )


# =============================================================================
# ROUTER FACTORY
# =============================================================================

def create_phases_router(registry: ServiceRegistry) -> APIRouter:
    """
    Create FastAPI router for phase ordering endpoints.

    Args:
        registry: Services keyed by project id

    Returns:
        FastAPI APIRouter
    """
    router = APIRouter(prefix="/api/v1", tags=["phases"])

    @router.get("/projects/{project_id}/phases")
    def list_phases(project_id: str) -> Dict[str, Any]:
        """Reconciled phase order with any anomalies found."""
        service = registry.get(project_id)
        result = service.refresh()
        body = _respond(result)
        body["report"] = _report(result)
        body["mode"] = service.mode.value
        return body

    @router.get("/projects/{project_id}/phases/positions")
    def list_positions(project_id: str) -> Dict[str, Any]:
        """Position options offered when moving a phase."""
        service = registry.get(project_id)
        total = len(service.phases)
        return {"total": total, "positions": available_positions(total)}

    @router.post("/projects/{project_id}/phases", status_code=201)
    def add_phase(project_id: str, request: PhaseCreate) -> Dict[str, Any]:
        service = registry.get(project_id)
        return _respond(service.add_phase(request.name, phase_id=request.phase_id))

    @router.post("/projects/{project_id}/phases/incorporate", status_code=201)
    def incorporate_phase(project_id: str, request: PhaseIncorporate) -> Dict[str, Any]:
        service = registry.get(project_id)
        return _respond(service.incorporate_phase(
            request.name,
            request.source_project_id,
            request.source_phase_id,
            phase_id=request.phase_id,
        ))

    @router.post("/projects/{project_id}/phases/{phase_id}/move")
    def move_phase(project_id: str, phase_id: str, request: PhaseMove) -> Dict[str, Any]:
        service = registry.get(project_id)
        return _respond(service.move_phase(phase_id, request.position))

    @router.post("/projects/{project_id}/phases/{phase_id}/move-up")
    def move_up(project_id: str, phase_id: str) -> Dict[str, Any]:
        return _respond(registry.get(project_id).move_up(phase_id))

    @router.post("/projects/{project_id}/phases/{phase_id}/move-down")
    def move_down(project_id: str, phase_id: str) -> Dict[str, Any]:
        return _respond(registry.get(project_id).move_down(phase_id))

    @router.delete("/projects/{project_id}/phases/{phase_id}")
    def delete_phase(project_id: str, phase_id: str) -> Dict[str, Any]:
        return _respond(registry.get(project_id).delete_phase(phase_id))

    @router.post("/projects/{project_id}/seed")
    def seed_project(project_id: str) -> Dict[str, Any]:
        """Create the standard phases of an empty project."""
        try:
            phases = registry.seed(project_id)
        except (CommitError, LoadError) as e:
            logger.error(f"Seeding {project_id} failed: {e}")
            raise HTTPException(status_code=500, detail=str(e))
        return {"project_id": project_id, "seeded": len(phases)}

    @router.post("/projects/{project_id}/recover")
    def recover(project_id: str) -> Dict[str, Any]:
        return _respond(registry.get(project_id).recover())

    @router.get("/projects/{project_id}/history")
    def history(project_id: str, limit: int = 20) -> Dict[str, Any]:
        """State transitions and commit transactions, newest last."""
        service = registry.get(project_id)
        return {
            "state": service.state.value,
            "transitions": [e.to_dict() for e in service.machine.get_history(limit)],
            "transactions": [t.to_dict() for t in service.transactions.get_history(limit)],
        }

    @router.get("/template")
    def template() -> Dict[str, Any]:
        try:
            entries = registry.template_provider.get_template()
        except LoadError as e:
            raise HTTPException(status_code=503, detail=str(e))
        return {
            "template_project_id": registry.config.template_project_id,
            "entries": [e.to_dict() for e in entries],
        }

    return router


def _report(result: OperationResult) -> Dict[str, Any]:
    aggregator = AnomalyAggregator()
    aggregator.add_all(result.anomalies)
    return aggregator.generate_report().to_dict()


# =============================================================================
# APPLICATION
# =============================================================================

def create_store(config: PhaseOrderConfig) -> PersistenceAdapter:
    """Phase store selected by ``storage.backend``."""
    backend = config.storage.backend.lower()
    if backend == "json":
        return JsonFilePhaseStore(config.storage.base_dir)
    if backend == "memory":
        return InMemoryPhaseStore()
    raise ValueError(f"Unknown storage backend: {config.storage.backend}")


def create_app(
    config: Optional[PhaseOrderConfig] = None,
    store: Optional[PersistenceAdapter] = None,
    template_provider: Optional[TemplateProvider] = None,
) -> FastAPI:
    """
    Create FastAPI application.

    Args:
        config: Configuration; the global config when omitted
        store: Phase store; built from ``config.storage`` when omitted
        template_provider: Template source; the template project when omitted

    Returns:
        FastAPI application instance
    """
    config = config or get_config()
    store = store if store is not None else create_store(config)
    registry = ServiceRegistry(store, template_provider, config.engine)

    app = FastAPI(
        title="Phase Order API",
        description="Phase position reconciliation and planning",
        version=config.version,
        docs_url=config.api.docs_url if config.api.enable_docs else None,
        redoc_url="/redoc" if config.api.enable_docs else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(create_phases_router(registry))
    app.state.registry = registry

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"status": "ok", "version": config.version, "projects": len(registry.project_ids())}

    logger.info(f"API created with {config.storage.backend} storage")
    return app
