"""
API Routes for the trip conductor.
"""
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from typing import Optional

from ..errors import (
    CapabilityError,
    ConductorError,
    EditError,
    GenerationError,
    ValidationError,
    describe_error,
)
from ..models.session import TripSession, session_store
from ..services.editor import get_edit_engine
from ..services.entitlements import EntitlementGate, RepositorySubscriptionSource
from ..services.mutation import get_mutation_applier
from ..services.notifications import get_notifier
from ..services.persistence import get_repository
from ..services.wizard import get_wizard_controller


router = APIRouter(prefix="/api", tags=["trip-conductor"])


# Request/Response Models
class SessionResponse(BaseModel):
    session_id: str
    phase: str
    step: str
    current_step: int
    total_steps: int
    draft: dict
    suggested_interests: list[str] = []
    trip_id: Optional[str] = None
    plan_version: Optional[int] = None
    pending_patch: Optional[dict] = None


class DraftUpdateRequest(BaseModel):
    field_updates: dict


class EditRequest(BaseModel):
    instruction: str


def _error_status(error: ConductorError) -> int:
    if isinstance(error, ValidationError):
        return 422
    if isinstance(error, CapabilityError):
        return 403
    if isinstance(error, (GenerationError, EditError)):
        return 502
    return 409


def _http_error(error: ConductorError) -> HTTPException:
    detail = error.to_dict()
    detail.update(describe_error(error))
    return HTTPException(status_code=_error_status(error), detail=detail)


def _get_session(session_id: str) -> TripSession:
    session = session_store.get(session_id)
    if session is None:
        # Resume progress saved before a restart
        try:
            session = get_wizard_controller().resume(session_id)
        except ConductorError as e:
            raise _http_error(e)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found")
        session_store.add(session)
    return session


def _summary(session: TripSession) -> SessionResponse:
    return SessionResponse(**session.get_summary())


# Endpoints

@router.post("/session", response_model=SessionResponse)
async def create_session():
    """Create a new wizard session."""
    session = session_store.create()
    return _summary(session)


@router.get("/session/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str):
    """Get session status, resuming saved wizard progress if needed."""
    return _summary(_get_session(session_id))


@router.put("/draft/{session_id}")
async def update_draft(session_id: str, request: DraftUpdateRequest):
    """Update draft fields. Rejected values are reported, not raised."""
    session = _get_session(session_id)
    try:
        accepted = get_wizard_controller().update_draft(session, request.field_updates)
    except ConductorError as e:
        raise _http_error(e)
    return {
        "accepted": accepted,
        "last_rejection": session.draft_store.last_rejection,
        "session": _summary(session),
    }


@router.post("/wizard/{session_id}/advance", response_model=SessionResponse)
async def advance(session_id: str):
    """Validate the current step and move forward."""
    session = _get_session(session_id)
    try:
        get_wizard_controller().advance(session)
    except ConductorError as e:
        raise _http_error(e)
    return _summary(session)


@router.post("/wizard/{session_id}/back", response_model=SessionResponse)
async def back(session_id: str):
    """Go back one step."""
    session = _get_session(session_id)
    try:
        get_wizard_controller().back(session)
    except ConductorError as e:
        raise _http_error(e)
    return _summary(session)


@router.post("/wizard/{session_id}/restart", response_model=SessionResponse)
async def restart(session_id: str):
    """Start the wizard over."""
    session = _get_session(session_id)
    get_wizard_controller().restart(session)
    return _summary(session)


@router.post("/wizard/{session_id}/generate")
async def generate(session_id: str):
    """Generate (or retry generating) the plan for the frozen draft."""
    session = _get_session(session_id)
    try:
        plan = await get_wizard_controller().run_generation(session)
    except ConductorError as e:
        raise _http_error(e)
    return {"plan": plan.to_display_dict(), "session": _summary(session)}


@router.delete("/wizard/{session_id}/generate", response_model=SessionResponse)
async def cancel_generation(session_id: str):
    """Cancel generation and return to the notes step."""
    session = _get_session(session_id)
    try:
        get_wizard_controller().cancel_generation(session)
    except ConductorError as e:
        raise _http_error(e)
    return _summary(session)


@router.get("/plan/{session_id}")
async def get_plan(session_id: str):
    """Get the current plan."""
    session = _get_session(session_id)
    if session.plan is None:
        return {"plan": None, "message": "No plan generated yet"}
    snapshot = session.plan.snapshot()
    return {"plan": snapshot.to_display_dict(), "raw": snapshot.model_dump(mode="json")}


@router.post("/plan/{session_id}/edit")
async def propose_edit(session_id: str, request: EditRequest):
    """Ask the assistant for a change. Nothing is applied until confirmed."""
    session = _get_session(session_id)
    try:
        patch = await get_edit_engine().propose(session, request.instruction)
    except ConductorError as e:
        raise _http_error(e)
    return {"proposal": patch.to_display_dict()}


@router.post("/plan/{session_id}/confirm")
async def confirm_edit(session_id: str):
    """Apply the pending change."""
    session = _get_session(session_id)
    try:
        plan = get_mutation_applier().confirm(session)
    except ConductorError as e:
        raise _http_error(e)
    return {"plan": plan.to_display_dict()}


@router.post("/plan/{session_id}/cancel")
async def cancel_edit(session_id: str):
    """Discard the pending change."""
    session = _get_session(session_id)
    patch = get_mutation_applier().cancel(session)
    return {"cancelled": patch.patch_id if patch else None}


@router.get("/entitlements")
async def get_entitlements():
    """Current feature permissions."""
    gate = EntitlementGate(RepositorySubscriptionSource(get_repository()))
    return gate.status().model_dump()


@router.get("/messages/{session_id}")
async def get_messages(session_id: str):
    """Get all chat messages for a session."""
    session = _get_session(session_id)
    return {
        "messages": [
            {
                "role": msg.role,
                "content": msg.content,
                "timestamp": msg.timestamp.isoformat()
            }
            for msg in session.messages
        ]
    }


@router.get("/notifications")
async def get_notifications():
    """Drain pending toast notifications."""
    return {"notifications": [n.model_dump(mode="json") for n in get_notifier().drain()]}
