"""
Session management - The context object every core operation receives.
"""
import asyncio
import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .draft import SUGGESTED_INTERESTS, DraftSnapshot, DraftStore, TripDraft
from .patch import Patch
from .plan import PlanModel


class WizardStep(str, Enum):
    """Wizard states: one per input step plus the terminal generating state."""
    DESTINATION = "destination"
    DATES = "dates"
    PEOPLE = "people"
    BUDGET = "budget"
    INTERESTS = "interests"
    NOTES = "notes"
    GENERATING = "generating"


INPUT_STEPS = [
    WizardStep.DESTINATION,
    WizardStep.DATES,
    WizardStep.PEOPLE,
    WizardStep.BUDGET,
    WizardStep.INTERESTS,
    WizardStep.NOTES,
]
TOTAL_STEPS = len(INPUT_STEPS)


def step_at(number: int) -> WizardStep:
    """Input step for a 1-based step number."""
    return INPUT_STEPS[number - 1]


class SessionPhase(str, Enum):
    """Current phase of the session."""
    WIZARD = "wizard"  # Collecting draft answers
    GENERATING = "generating"  # Draft frozen, plan being generated
    EDITING = "editing"  # Plan exists, chat edits allowed


class ChatMessage(BaseModel):
    """A single message in the edit conversation."""
    role: str = Field(..., description="'user' or 'assistant'")
    content: str = Field(..., description="Message content")
    timestamp: datetime = Field(default_factory=datetime.now)


class WizardSnapshot(BaseModel):
    """Persisted wizard progress, used to resume after a restart."""
    session_id: str
    current_step: int = Field(1, ge=1, le=TOTAL_STEPS)
    draft: TripDraft = Field(default_factory=TripDraft)
    saved_at: datetime = Field(default_factory=datetime.now)


class TripSession(BaseModel):
    """Draft, plan and pending patch owned by one active session."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    session_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Unique session identifier"
    )
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    phase: SessionPhase = Field(
        default=SessionPhase.WIZARD,
        description="Current session phase"
    )
    current_step: int = Field(
        default=1, ge=1, le=TOTAL_STEPS,
        description="1-based input step; kept while generating"
    )

    draft_store: DraftStore = Field(default_factory=DraftStore)
    frozen_draft: Optional[DraftSnapshot] = None
    plan: Optional[PlanModel] = None
    pending_patch: Optional[Patch] = None

    messages: list[ChatMessage] = Field(default_factory=list)

    # Request bookkeeping; a result whose sequence number is no longer
    # current belongs to a superseded request and is discarded.
    generation_seq: int = 0
    generation_in_flight: bool = False
    generation_task: Optional[asyncio.Task] = None
    proposal_seq: int = 0

    @property
    def wizard_step(self) -> WizardStep:
        if self.phase == SessionPhase.GENERATING:
            return WizardStep.GENERATING
        return step_at(self.current_step)

    def touch(self):
        self.updated_at = datetime.now()

    def add_message(self, role: str, content: str) -> ChatMessage:
        """Add a message to the conversation."""
        msg = ChatMessage(role=role, content=content)
        self.messages.append(msg)
        self.touch()
        return msg

    def to_wizard_snapshot(self) -> WizardSnapshot:
        return WizardSnapshot(
            session_id=self.session_id,
            current_step=self.current_step,
            draft=self.draft_store.draft,
        )

    def get_summary(self) -> dict:
        """Get a summary of session status."""
        return {
            "session_id": self.session_id,
            "phase": self.phase.value,
            "step": self.wizard_step.value,
            "current_step": self.current_step,
            "total_steps": TOTAL_STEPS,
            "draft": self.draft_store.draft.get_filled_fields(),
            "suggested_interests": list(SUGGESTED_INTERESTS) if self.wizard_step == WizardStep.INTERESTS else [],
            "trip_id": self.plan.trip_id if self.plan else None,
            "plan_version": self.plan.version if self.plan else None,
            "pending_patch": self.pending_patch.to_display_dict() if self.pending_patch else None,
        }


# In-memory session registry (would be replaced with database in production)
class SessionStore:
    """Simple in-memory session store."""

    def __init__(self):
        self._sessions: dict[str, TripSession] = {}

    def create(self) -> TripSession:
        """Create a new session."""
        session = TripSession()
        self._sessions[session.session_id] = session
        return session

    def add(self, session: TripSession):
        self._sessions[session.session_id] = session

    def get(self, session_id: str) -> Optional[TripSession]:
        """Get a session by ID."""
        return self._sessions.get(session_id)

    def delete(self, session_id: str):
        """Delete a session."""
        self._sessions.pop(session_id, None)


# Global session store
session_store = SessionStore()
