"""
Aqua Assist - REST API

FastAPI application exposing report intake, verification, community
votes, moderation and trust scores.

Run with: uvicorn aquaassist.api.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import BackgroundTasks, Body, Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from aquaassist.core.auth import Actor, STATISTICS_ROLES, ADMIN_ROLES, require_roles
from aquaassist.core.config import settings
from aquaassist.core.constants import MAX_DESCRIPTION_LENGTH, MAX_REASON_LENGTH
from aquaassist.core.exceptions import AquaAssistError
from aquaassist.core.logging import setup_logging
from aquaassist.crowdsource import (
    ModerationWorkflow,
    ReportHandler,
    TrustScoreUpdater,
    VoteLedger,
)
from aquaassist.database.connection import DatabaseConnection, get_db
from aquaassist.database.models import ReportKind, Severity, utcnow
from aquaassist.verification import (
    BulkVerificationScheduler,
    VerificationCombiner,
    VerificationService,
)

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


class EngineServices:
    """Stateless service objects sharing one database connection."""

    def __init__(self, db: DatabaseConnection, adapters=None):
        self.db = db
        combiner = VerificationCombiner()
        self.trust = TrustScoreUpdater(db)
        self.reports = ReportHandler(db)
        self.votes = VoteLedger(db, combiner=combiner, trust_updater=self.trust)
        self.moderation = ModerationWorkflow(db, combiner=combiner, trust_updater=self.trust)
        self.verification = VerificationService(
            db, adapters=adapters, combiner=combiner, trust_updater=self.trust
        )
        self.bulk = BulkVerificationScheduler(self.verification)


_services: Optional[EngineServices] = None


def get_services() -> EngineServices:
    """Service container backed by the global database connection."""
    global _services
    if _services is None:
        _services = EngineServices(get_db())
    return _services


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    get_services().db.create_tables()
    logger.info(f"Aqua Assist API {API_VERSION} started ({settings.app_env})")
    yield


# FastAPI app
app = FastAPI(
    title="Aqua Assist",
    description="Verification and moderation engine for crowd-submitted flood reports and water issues",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AquaAssistError)
async def aquaassist_error_handler(request: Request, exc: AquaAssistError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def get_actor(
    x_user_id: Optional[str] = Header(default=None),
    x_user_roles: Optional[str] = Header(default=None),
) -> Actor:
    """Caller identity as forwarded by the session service."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Authentication required")
    return Actor.from_header(x_user_id.strip(), x_user_roles or "")


# ============================================================================
# Pydantic Models
# ============================================================================

class HealthResponse(BaseModel):
    """API health check response."""
    status: str
    version: str
    timestamp: str
    database: str


class LocationModel(BaseModel):
    district: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: Optional[str] = Field(default=None, max_length=300)
    landmark: Optional[str] = Field(default=None, max_length=200)


class FloodReportCreateRequest(BaseModel):
    """Request to create a flood report."""
    location: LocationModel
    description: str = Field(..., min_length=1, max_length=MAX_DESCRIPTION_LENGTH)
    severity: Severity = Severity.MEDIUM
    water_level: Optional[str] = None
    media_files: List[str] = Field(default_factory=list)


class WaterIssueCreateRequest(BaseModel):
    """Request to create a water issue."""
    location: LocationModel
    description: str = Field(..., min_length=1, max_length=MAX_DESCRIPTION_LENGTH)
    severity: Severity = Severity.MEDIUM
    issue_type: str
    media_files: List[str] = Field(default_factory=list)


class VoteRequest(BaseModel):
    direction: str


class ModerateRequest(BaseModel):
    action: str
    reason: Optional[str] = Field(default=None, max_length=MAX_REASON_LENGTH)


class MunicipalityResponseRequest(BaseModel):
    """Official municipality response to a water issue."""
    message: str
    action_taken: Optional[str] = None
    estimated_fix_time: Optional[datetime] = None
    contact_person: Optional[str] = None
    contact_number: Optional[str] = None


class LifecycleRequest(BaseModel):
    status: str


class BulkVerifyRequest(BaseModel):
    limit: int = Field(default=settings.bulk_default_limit)


class BulkVerifyResponse(BaseModel):
    """Counts of one bulk verification run."""
    processed: int
    verified: int
    partially_verified: int
    disputed: int
    manual_review: int
    pending: int
    failed: int
    skipped: int


class TrustResponse(BaseModel):
    id: str
    display_name: Optional[str]
    trust_score: int
    verified_reports: int


def _create(services: EngineServices, kind: ReportKind, request, actor: Actor, **details) -> Dict[str, Any]:
    location = request.location
    return services.reports.create_report(
        kind=kind,
        submitter_id=actor.user_id,
        district=location.district,
        state=location.state,
        latitude=location.latitude,
        longitude=location.longitude,
        address=location.address,
        landmark=location.landmark,
        description=request.description,
        severity=request.severity,
        media_files=request.media_files,
        **details
    )


# ============================================================================
# System
# ============================================================================

@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check(services: EngineServices = Depends(get_services)):
    """Liveness and database connectivity."""
    database_ok = services.db.check_connection()
    return HealthResponse(
        status="healthy" if database_ok else "degraded",
        version=API_VERSION,
        timestamp=utcnow().isoformat(),
        database="connected" if database_ok else "unavailable",
    )


# ============================================================================
# Report Intake
# ============================================================================

@app.post("/api/v1/reports", status_code=201, tags=["Reports"])
async def create_flood_report(
    request: FloodReportCreateRequest,
    actor: Actor = Depends(get_actor),
    services: EngineServices = Depends(get_services),
):
    """Submit a flood report."""
    return _create(services, ReportKind.FLOOD, request, actor, water_level=request.water_level)


@app.post("/api/v1/water-issues", status_code=201, tags=["Reports"])
async def create_water_issue(
    request: WaterIssueCreateRequest,
    actor: Actor = Depends(get_actor),
    services: EngineServices = Depends(get_services),
):
    """Submit a water-supply issue."""
    return _create(services, ReportKind.WATER_ISSUE, request, actor, issue_type=request.issue_type)


@app.get("/api/v1/reports/{report_id}", tags=["Reports"])
async def get_report(report_id: str, services: EngineServices = Depends(get_services)):
    """Report with its verification record and vote tally."""
    return services.reports.get_report(report_id)


@app.delete("/api/v1/reports/{report_id}", tags=["Reports"])
async def delete_report(
    report_id: str,
    actor: Actor = Depends(get_actor),
    services: EngineServices = Depends(get_services),
):
    """Delete a report (admin only)."""
    services.reports.delete_report(report_id, actor)
    return {"message": "Report deleted", "report_id": report_id}


# ============================================================================
# Verification
# ============================================================================

@app.post("/api/v1/verification/verify/{report_id}", tags=["Verification"])
async def verify_report(
    report_id: str,
    actor: Actor = Depends(get_actor),
    services: EngineServices = Depends(get_services),
):
    """Cross-check a report against weather, news and social sources."""
    logger.info(f"Verification of report {report_id} requested by {actor.user_id}")
    return await services.verification.verify_report(report_id)


@app.get("/api/v1/verification/status/{report_id}", tags=["Verification"])
async def verification_status(
    report_id: str,
    actor: Actor = Depends(get_actor),
    services: EngineServices = Depends(get_services),
):
    """Current verification record of a report."""
    return services.verification.status(report_id)


@app.post("/api/v1/verification/bulk-verify", response_model=BulkVerifyResponse, tags=["Verification"])
async def bulk_verify(
    request: Optional[BulkVerifyRequest] = Body(default=None),
    actor: Actor = Depends(get_actor),
    services: EngineServices = Depends(get_services),
):
    """Verify a batch of pending reports (admin only); the body is optional."""
    require_roles(actor, ADMIN_ROLES, "Bulk verification")
    limit = request.limit if request is not None else None
    result = await services.bulk.run_bulk(limit)
    return BulkVerifyResponse(**result.to_dict())


@app.get("/api/v1/verification/statistics", tags=["Verification"])
async def verification_statistics(
    actor: Actor = Depends(get_actor),
    services: EngineServices = Depends(get_services),
):
    """Verification statistics across all reports."""
    require_roles(actor, STATISTICS_ROLES, "Verification statistics")
    return services.reports.get_statistics()


# ============================================================================
# Community Votes
# ============================================================================

@app.post("/api/v1/reports/{report_id}/vote", tags=["Community"])
async def vote_on_report(
    report_id: str,
    request: VoteRequest,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    services: EngineServices = Depends(get_services),
):
    """Upvote or downvote a report."""
    result = services.votes.cast_vote(
        report_id, actor.user_id, request.direction, settle_trust=False
    )
    if result.trust_adjustments:
        background_tasks.add_task(services.votes.settle_trust, result)
    return result.to_dict()


# ============================================================================
# Moderation
# ============================================================================

@app.put("/api/v1/reports/{report_id}/moderate", tags=["Moderation"])
async def moderate_report(
    report_id: str,
    request: ModerateRequest,
    actor: Actor = Depends(get_actor),
    services: EngineServices = Depends(get_services),
):
    """Verify, reject or escalate a report."""
    return services.moderation.moderate(report_id, actor, request.action, request.reason)


@app.delete("/api/v1/reports/{report_id}/moderation-lock", tags=["Moderation"])
async def clear_moderation_lock(
    report_id: str,
    actor: Actor = Depends(get_actor),
    services: EngineServices = Depends(get_services),
):
    """Return a report to automatic verification."""
    return services.moderation.clear_override(report_id, actor)


@app.get("/api/v1/reports/{report_id}/moderation-history", tags=["Moderation"])
async def moderation_history(
    report_id: str,
    actor: Actor = Depends(get_actor),
    services: EngineServices = Depends(get_services),
):
    """Moderation actions on a report, oldest first."""
    actions = services.moderation.history(report_id)
    return {"report_id": report_id, "count": len(actions), "actions": actions}


@app.post("/api/v1/water-issues/{report_id}/municipality-response", tags=["Moderation"])
async def municipality_response(
    report_id: str,
    request: MunicipalityResponseRequest,
    actor: Actor = Depends(get_actor),
    services: EngineServices = Depends(get_services),
):
    """Attach the official municipality response to a water issue."""
    estimated_fix_time = request.estimated_fix_time
    if estimated_fix_time is not None and estimated_fix_time.tzinfo is not None:
        estimated_fix_time = estimated_fix_time.replace(tzinfo=None) - estimated_fix_time.utcoffset()
    return services.moderation.respond(
        report_id,
        actor,
        message=request.message,
        action_taken=request.action_taken,
        estimated_fix_time=estimated_fix_time,
        contact_person=request.contact_person,
        contact_number=request.contact_number,
    )


@app.put("/api/v1/water-issues/{report_id}/status", tags=["Moderation"])
async def update_lifecycle(
    report_id: str,
    request: LifecycleRequest,
    actor: Actor = Depends(get_actor),
    services: EngineServices = Depends(get_services),
):
    """Advance a report through its handling lifecycle."""
    return services.moderation.advance_lifecycle(report_id, actor, request.status)


# ============================================================================
# Users
# ============================================================================

@app.get("/api/v1/users/{user_id}/trust", response_model=TrustResponse, tags=["Users"])
async def get_user_trust(user_id: str, services: EngineServices = Depends(get_services)):
    """Trust score of a user."""
    return services.trust.get_trust(user_id)
