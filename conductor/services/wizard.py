"""
Wizard Controller - Sequences the trip draft steps and hands the finished
draft to plan generation.

The controller holds no session state of its own; every operation receives
the TripSession it acts on.
"""
import asyncio
import logging
from typing import Optional

from .entitlements import Capability, EntitlementGate, RepositorySubscriptionSource
from .generator import get_generator
from .notifications import Severity, get_notifier, safe_notify
from .persistence import get_repository
from ..errors import (
    CapabilityError,
    GenerationError,
    IntegrityViolation,
    SessionStateError,
    ValidationError,
    describe_error,
)
from ..models.draft import NOTES_MAX_LENGTH, TripDraft
from ..models.plan import PlanModel, TripPlan
from ..models.session import TOTAL_STEPS, SessionPhase, TripSession, WizardStep

logger = logging.getLogger(__name__)


def validate_step(step: WizardStep, draft: TripDraft) -> list[tuple[str, str]]:
    """Return (field, message) problems blocking advance from a step."""
    problems = []
    if step == WizardStep.DESTINATION:
        if not draft.destination:
            problems.append(("destination", "Choose a destination"))
    elif step == WizardStep.DATES:
        if draft.date_range is None:
            problems.append(("date_range", "Choose start and end dates"))
        elif draft.date_range.start > draft.date_range.end:
            problems.append(("date_range", "Start date must not be after end date"))
    elif step == WizardStep.PEOPLE:
        if draft.people.adults < 1:
            problems.append(("people", "At least one adult must travel"))
        if draft.people.children < 0:
            problems.append(("people", "Number of children cannot be negative"))
    elif step == WizardStep.BUDGET:
        if draft.budget is None:
            problems.append(("budget", "Choose a budget level"))
    elif step == WizardStep.INTERESTS:
        if not draft.interests:
            problems.append(("interests", "Select at least one interest"))
    elif step == WizardStep.NOTES:
        if len(draft.notes) > NOTES_MAX_LENGTH:
            problems.append(("notes", f"Notes must be at most {NOTES_MAX_LENGTH} characters"))
    else:
        raise SessionStateError(f"Step '{step.value}' takes no input")
    return problems


class WizardController:
    """
    Linear state machine over the wizard steps.

    - advance() re-validates the current step against the current draft
    - back() never validates
    - the notes step additionally needs the create-trip entitlement
    - generation runs once per request; superseded results are discarded
    """

    def __init__(self, generator=None, repository=None, entitlements=None, notifier=None):
        self.generator = generator or get_generator()
        self.repository = repository or get_repository()
        self.entitlements = entitlements or EntitlementGate(RepositorySubscriptionSource(self.repository))
        self.notifier = notifier if notifier is not None else get_notifier()

    # ------------------------------------------------------------------
    # Draft input
    # ------------------------------------------------------------------

    def update_draft(self, session: TripSession, updates: dict) -> dict[str, bool]:
        """
        Route field updates to the draft store setters.

        Returns a map of field name to whether the value was accepted.
        """
        if session.phase != SessionPhase.WIZARD:
            raise SessionStateError("The draft can only change while the wizard is open")

        store = session.draft_store
        results = {}
        for field, value in updates.items():
            if field == "destination":
                results[field] = store.set_destination(value)
            elif field in ("date_range", "people") and value is not None and not isinstance(value, dict):
                logger.warning(f"Rejected draft update for {field}: expected an object, got {value!r}")
                results[field] = False
            elif field == "interests" and value is not None and (
                not isinstance(value, list) or not all(isinstance(i, str) for i in value)
            ):
                logger.warning(f"Rejected draft update for interests: expected a list of text, got {value!r}")
                results[field] = False
            elif field == "date_range":
                value = value or {}
                results[field] = store.set_date_range(value.get("start"), value.get("end"))
            elif field == "people":
                value = value or {}
                results[field] = store.set_people(value.get("adults", 1), value.get("children", 0))
            elif field == "budget":
                results[field] = store.set_budget(value)
            elif field == "toggle_interest":
                results[field] = store.toggle_interest(value)
            elif field == "interests":
                current = set(store.draft.interests)
                wanted = list(dict.fromkeys(value or []))
                accepted = True
                for interest in [i for i in current if i not in wanted] + [i for i in wanted if i not in current]:
                    accepted = store.toggle_interest(interest) and accepted
                results[field] = accepted
            elif field == "notes":
                results[field] = store.set_notes(value)
            else:
                logger.warning(f"Ignoring unknown draft field {field!r}")
                results[field] = False

        session.touch()
        self._persist(session)
        return results

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def advance(self, session: TripSession) -> WizardStep:
        """Move to the next step if the current one is complete."""
        if session.phase != SessionPhase.WIZARD:
            raise SessionStateError(f"Cannot advance from '{session.wizard_step.value}'")

        step = session.wizard_step
        problems = validate_step(step, session.draft_store.draft)
        if problems:
            field, message = problems[0]
            logger.info(f"Session {session.session_id} blocked at {step.value}: {message}")
            safe_notify(self.notifier, message, Severity.WARNING)
            raise ValidationError(message, step=step.value, field=field)

        if step == WizardStep.NOTES:
            try:
                self.entitlements.require(Capability.CREATE_TRIP)
            except CapabilityError as e:
                safe_notify(self.notifier, describe_error(e)["message"], Severity.ERROR)
                raise
            session.frozen_draft = session.draft_store.freeze()
            session.phase = SessionPhase.GENERATING
        else:
            session.current_step += 1

        session.touch()
        self._persist(session)
        logger.info(f"Session {session.session_id} advanced {step.value} -> {session.wizard_step.value}")
        return session.wizard_step

    def back(self, session: TripSession) -> WizardStep:
        """Go one step back. Never validates; leaving generating cancels it."""
        if session.phase == SessionPhase.EDITING:
            raise SessionStateError("The wizard is finished; start a new trip instead")

        if session.phase == SessionPhase.GENERATING:
            self._rollback_generation(session)
            safe_notify(self.notifier, "Plan generation cancelled", Severity.INFO)
        elif session.current_step > 1:
            session.current_step -= 1

        session.touch()
        self._persist(session)
        logger.info(f"Session {session.session_id} went back to {session.wizard_step.value}")
        return session.wizard_step

    def restart(self, session: TripSession) -> WizardStep:
        """Discard the draft (and any plan) and start again at step 1."""
        if session.phase == SessionPhase.GENERATING:
            self._rollback_generation(session)
        session.draft_store.reset()
        session.current_step = 1
        session.phase = SessionPhase.WIZARD
        session.frozen_draft = None
        session.plan = None
        session.pending_patch = None
        session.touch()
        self._persist(session)
        return session.wizard_step

    def resume(self, session_id: str) -> Optional[TripSession]:
        """
        Rebuild a session from persisted progress.

        The draft is restored as saved; nothing is re-validated until the
        user advances again. A wizard saved while generating resumes at notes.
        A session whose plan was already generated reopens in editing.
        """
        data = self.repository.load_wizard_data(session_id)
        if data is None:
            return self._resume_plan(session_id)

        session = TripSession(session_id=session_id)
        session.draft_store.restore(data.get("draft") or {})
        step = data.get("current_step", 1)
        if not isinstance(step, int) or not 1 <= step <= TOTAL_STEPS:
            logger.warning(f"Saved step {step!r} out of range, resuming at step 1")
            step = 1
        session.current_step = step
        logger.info(f"Resumed session {session_id} at {session.wizard_step.value}")
        return session

    def _resume_plan(self, session_id: str) -> Optional[TripSession]:
        trip_id = self.repository.load_session_trip(session_id)
        if trip_id is None:
            return None
        plan = self.repository.load_plan(trip_id)
        if plan is None:
            logger.warning(f"Session {session_id} refers to missing plan {trip_id}")
            return None

        session = TripSession(
            session_id=session_id,
            phase=SessionPhase.EDITING,
            current_step=TOTAL_STEPS,
            plan=PlanModel(plan),
        )
        logger.info(f"Resumed session {session_id} editing plan {trip_id} version {plan.version}")
        return session

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def run_generation(self, session: TripSession) -> TripPlan:
        """
        Generate the plan for the frozen draft.

        On failure the session stays in generating with the same snapshot,
        so the caller may retry or go back.
        """
        if session.phase != SessionPhase.GENERATING or session.frozen_draft is None:
            raise SessionStateError("Nothing to generate; finish the wizard first")
        if session.generation_in_flight:
            raise SessionStateError("A plan is already being generated")

        session.generation_seq += 1
        seq = session.generation_seq
        session.generation_in_flight = True
        logger.info(f"Session {session.session_id} generating plan (request {seq})")

        try:
            plan = await self._call_generator(session.frozen_draft)
            if session.generation_seq != seq:
                logger.info(f"Discarding late plan for superseded request {seq}")
                raise GenerationError("Plan generation was cancelled", code="cancelled")
            try:
                plan_model = PlanModel(plan)
            except IntegrityViolation as e:
                raise GenerationError(f"Generated plan is inconsistent: {e.message}", code="invalid_response") from e
        except asyncio.CancelledError:
            if session.generation_seq == seq:
                logger.info(f"Generation request {seq} cancelled")
                self._rollback_generation(session)
                self._persist(session)
            raise
        except GenerationError as e:
            if session.generation_seq == seq:
                session.generation_in_flight = False
                session.generation_task = None
                safe_notify(self.notifier, describe_error(e)["message"], Severity.ERROR)
            raise

        session.generation_in_flight = False
        session.generation_task = None
        session.plan = plan_model
        session.phase = SessionPhase.EDITING
        session.touch()

        snapshot = plan_model.snapshot()
        self.repository.save_plan(snapshot)
        self.repository.save_session_trip(session.session_id, snapshot.trip_id)
        self.repository.delete_wizard(session.session_id)
        logger.info(f"Session {session.session_id} received plan {snapshot.trip_id}")
        safe_notify(self.notifier, "Your trip plan is ready!", Severity.SUCCESS)
        return snapshot

    def start_generation(self, session: TripSession) -> asyncio.Task:
        """Run generation as a task that cancel_generation can stop."""
        if session.generation_in_flight or (session.generation_task and not session.generation_task.done()):
            raise SessionStateError("A plan is already being generated")
        if session.phase != SessionPhase.GENERATING:
            raise SessionStateError("Nothing to generate; finish the wizard first")
        session.generation_task = asyncio.create_task(self.run_generation(session))
        return session.generation_task

    def cancel_generation(self, session: TripSession) -> WizardStep:
        """Stop generation and return to the notes step."""
        if session.phase != SessionPhase.GENERATING:
            raise SessionStateError("No plan is being generated")
        return self.back(session)

    async def _call_generator(self, snapshot) -> TripPlan:
        try:
            return await self.generator.generate(snapshot)
        except GenerationError:
            raise
        except Exception as e:
            logger.error(f"Generator raised {type(e).__name__}: {e}")
            raise GenerationError(str(e), code="llm_error") from e

    def _rollback_generation(self, session: TripSession):
        # Bumping the sequence marks any in-flight request as superseded
        session.generation_seq += 1
        task = session.generation_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        session.generation_task = None
        session.generation_in_flight = False
        session.frozen_draft = None
        session.draft_store.thaw()
        session.phase = SessionPhase.WIZARD
        session.current_step = TOTAL_STEPS

    def _persist(self, session: TripSession):
        if session.phase == SessionPhase.EDITING:
            return
        self.repository.save_wizard(session.to_wizard_snapshot())


# Global wizard controller
wizard_controller: Optional[WizardController] = None


def get_wizard_controller() -> WizardController:
    """Get or create the global wizard controller."""
    global wizard_controller
    if wizard_controller is None:
        wizard_controller = WizardController()
    return wizard_controller
