"""
JSON API in front of the coordination service.

Authentication happens in the gateway; it forwards the user id and a
comma-separated role list in the headers named by
Settings.identity_user_header and Settings.identity_roles_header.
Captaincies are looked up from the roster on every request.

Run locally with:
    python -m subdesk.web.main
"""

import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse

from subdesk import __version__
from subdesk.access import gate
from subdesk.access.roles import ActingUser
from subdesk.config import settings
from subdesk.errors import CoordinationError, Forbidden
from subdesk.services import CoordinationService
from subdesk.web.schemas import (
    ActingUserOut,
    AssignmentOut,
    AssignmentProposalIn,
    AvailabilityChangeOut,
    AvailabilityIn,
    AvailabilityOut,
    CandidateOut,
    DecisionIn,
    HousekeepingOut,
    RequestArchivalOut,
    RequestOut,
    RequestUpsertIn,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Subdesk", version=__version__)

STATUS_BY_CATEGORY = {
    "authorization": 403,
    "validation": 422,
    "state": 409,
    "not_found": 404,
    "infrastructure": 503,
}

_service: Optional[CoordinationService] = None


def get_service() -> CoordinationService:
    """Shared service instance; tests swap it via app.dependency_overrides."""
    global _service
    if _service is None:
        _service = CoordinationService()
    return _service


def get_acting_user(
    request: Request,
    service: CoordinationService = Depends(get_service),
) -> ActingUser:
    user_id = request.headers.get(settings.identity_user_header, "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Missing user identity")
    raw_roles = request.headers.get(settings.identity_roles_header, "")
    roles = [role for role in raw_roles.split(",") if role.strip()]
    return service.resolve_acting_user(user_id, roles)


@app.exception_handler(CoordinationError)
async def coordination_error_handler(request: Request, exc: CoordinationError):
    """Render workflow errors as {"error": kind, "detail": message}."""
    status_code = STATUS_BY_CATEGORY.get(exc.category, 409)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    headers = {"Retry-After": "1"} if status_code == 503 else None
    return JSONResponse(status_code=status_code, content=exc.to_dict(), headers=headers)


@app.get("/api/health")
def health():
    return {"status": "ok", "version": __version__}


@app.get("/api/me", response_model=ActingUserOut)
def me(user: ActingUser = Depends(get_acting_user)):
    return ActingUserOut(
        user_id=user.user_id,
        roles=sorted(user.roles),
        captain_of=sorted(user.captain_of),
    )


# =============================================================================
# Availability
# =============================================================================


@app.put("/api/fixtures/{fixture_id}/availability/{player_id}", response_model=AvailabilityChangeOut)
def set_availability(
    fixture_id: int,
    player_id: str,
    body: AvailabilityIn,
    user: ActingUser = Depends(get_acting_user),
    service: CoordinationService = Depends(get_service),
):
    return service.set_availability(
        fixture_id=fixture_id,
        player_id=player_id,
        status=body.status,
        notes=body.notes,
        acting_user=user,
        team_id=body.team_id,
    )


@app.get("/api/fixtures/{fixture_id}/availability", response_model=list[AvailabilityOut])
def get_availability(
    fixture_id: int,
    team_id: Optional[int] = Query(None),
    service: CoordinationService = Depends(get_service),
):
    return service.get_availability(fixture_id, team_id=team_id)


# =============================================================================
# Substitute requests
# =============================================================================


@app.put("/api/requests", response_model=RequestOut)
def upsert_request(
    body: RequestUpsertIn,
    user: ActingUser = Depends(get_acting_user),
    service: CoordinationService = Depends(get_service),
):
    return service.upsert_request(
        team_id=body.team_id,
        player_id=body.player_id,
        fixture_id=body.fixture_id,
        needs_substitute=body.needs_substitute,
        notes=body.notes,
        valid_until=body.valid_until,
        acting_user=user,
    )


@app.get("/api/requests", response_model=list[RequestOut])
def list_requests(
    team_id: Optional[int] = Query(None),
    fixture_id: Optional[int] = Query(None),
    include_archived: bool = Query(False),
    service: CoordinationService = Depends(get_service),
):
    return service.list_open_requests(
        team_id=team_id,
        include_archived=include_archived,
        fixture_id=fixture_id,
    )


@app.delete("/api/requests/{request_id}", status_code=204)
def delete_request(
    request_id: int,
    user: ActingUser = Depends(get_acting_user),
    service: CoordinationService = Depends(get_service),
):
    service.delete_request(request_id, user)
    return Response(status_code=204)


@app.post("/api/requests/{request_id}/archive", response_model=RequestArchivalOut)
def archive_request(
    request_id: int,
    user: ActingUser = Depends(get_acting_user),
    service: CoordinationService = Depends(get_service),
):
    return service.archive_request(request_id, user)


@app.post("/api/requests/archive-expired", response_model=HousekeepingOut)
def archive_expired_requests(
    grace_days: Optional[int] = Query(None, ge=0),
    user: ActingUser = Depends(get_acting_user),
    service: CoordinationService = Depends(get_service),
):
    if not gate.can_archive(user):
        logger.info("Denied archive-expired for user=%s", user.user_id)
        raise Forbidden(
            "Not allowed to archive requests: requires administrator or board member",
            user_id=user.user_id,
        )
    archivals = service.archive_expired_requests(grace_days=grace_days)
    return HousekeepingOut(
        archived_request_ids=[a.request.id for a in archivals],
        archived_assignment_ids=[i for a in archivals for i in a.archived_assignment_ids],
    )


# =============================================================================
# Substitute assignments
# =============================================================================


@app.post("/api/assignments", response_model=AssignmentOut, status_code=201)
def propose_assignment(
    body: AssignmentProposalIn,
    user: ActingUser = Depends(get_acting_user),
    service: CoordinationService = Depends(get_service),
):
    return service.propose_assignment(
        team_id=body.team_id,
        substitute_team_id=body.substitute_team_id,
        substitute_player_id=body.substitute_player_id,
        notes=body.notes,
        acting_user=user,
        request_id=body.request_id,
    )


@app.get("/api/assignments/approved", response_model=list[AssignmentOut])
def list_approved(
    include_archived: bool = Query(False),
    service: CoordinationService = Depends(get_service),
):
    return service.list_approved(include_archived)


@app.get("/api/assignments/archived", response_model=list[AssignmentOut])
def list_archived(service: CoordinationService = Depends(get_service)):
    return service.list_archived()


@app.get("/api/assignments/decidable", response_model=list[AssignmentOut])
def list_decidable(
    include_archived: bool = Query(False),
    user: ActingUser = Depends(get_acting_user),
    service: CoordinationService = Depends(get_service),
):
    return service.list_decidable(user, include_archived)


@app.post("/api/assignments/{assignment_id}/decision", response_model=AssignmentOut)
def decide(
    assignment_id: int,
    body: DecisionIn,
    user: ActingUser = Depends(get_acting_user),
    service: CoordinationService = Depends(get_service),
):
    return service.decide(assignment_id, body.decision, user)


@app.post("/api/assignments/{assignment_id}/archive", response_model=AssignmentOut)
def archive_assignment(
    assignment_id: int,
    user: ActingUser = Depends(get_acting_user),
    service: CoordinationService = Depends(get_service),
):
    return service.archive_assignment(assignment_id, user)


@app.delete("/api/assignments/{assignment_id}", status_code=204)
def delete_archived_assignment(
    assignment_id: int,
    user: ActingUser = Depends(get_acting_user),
    service: CoordinationService = Depends(get_service),
):
    service.delete_archived(assignment_id, user)
    return Response(status_code=204)


# =============================================================================
# Teams
# =============================================================================


@app.get("/api/teams/{team_id}/assignments", response_model=list[AssignmentOut])
def list_by_team(
    team_id: int,
    include_archived: bool = Query(False),
    service: CoordinationService = Depends(get_service),
):
    return service.list_by_team(team_id, include_archived)


@app.get("/api/teams/{team_id}/candidates", response_model=list[CandidateOut])
def list_candidates(
    team_id: int,
    source_team_id: int = Query(...),
    service: CoordinationService = Depends(get_service),
):
    return service.list_candidates(team_id, source_team_id)


if __name__ == "__main__":
    import uvicorn

    from subdesk.logging_config import configure_logging

    configure_logging()
    uvicorn.run(
        "subdesk.web.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
