"""
Edit Proposal Engine - Turns a chat instruction into one pending patch.

Proposing never mutates the plan. Only one patch may be pending per
session: a new request discards the previous proposal immediately.
"""
import logging
from typing import Optional

from .edit_proposer import get_edit_proposer
from .entitlements import Capability, EntitlementGate, RepositorySubscriptionSource
from .notifications import Severity, get_notifier, safe_notify
from .persistence import get_repository
from ..errors import CapabilityError, EditError, SessionStateError, ValidationError, describe_error
from ..models.patch import Patch
from ..models.session import SessionPhase, TripSession

logger = logging.getLogger(__name__)


class EditProposalEngine:
    """Gated front door to the edit collaborator."""

    def __init__(self, proposer=None, entitlements=None, notifier=None):
        self.proposer = proposer or get_edit_proposer()
        self.entitlements = entitlements or EntitlementGate(RepositorySubscriptionSource(get_repository()))
        self.notifier = notifier if notifier is not None else get_notifier()

    async def propose(self, session: TripSession, instruction: str) -> Patch:
        """
        Ask for a patch implementing the instruction and make it pending.

        Raises:
            SessionStateError: the session has no plan yet
            CapabilityError: AI editing is not included in the subscription
            ValidationError: the instruction is empty
            EditError: the collaborator failed, or a newer request superseded this one
        """
        if session.phase != SessionPhase.EDITING or session.plan is None:
            raise SessionStateError("There is no plan to edit yet")

        try:
            self.entitlements.require(Capability.AI_EDIT)
        except CapabilityError as e:
            safe_notify(self.notifier, describe_error(e)["message"], Severity.ERROR)
            raise

        instruction = (instruction or "").strip()
        if not instruction:
            raise ValidationError("Describe the change you would like", field="instruction")

        if session.pending_patch is not None:
            logger.info(f"Discarding pending patch {session.pending_patch.patch_id} for a new proposal")
            session.pending_patch = None

        session.proposal_seq += 1
        seq = session.proposal_seq
        session.add_message("user", instruction)
        snapshot = session.plan.snapshot()

        try:
            patch = await self.proposer.propose_edit(snapshot, instruction)
        except EditError as e:
            self._report_failure(session, seq, e)
            raise
        except Exception as e:
            logger.error(f"Edit proposer raised {type(e).__name__}: {e}")
            error = EditError(str(e), code="llm_error")
            self._report_failure(session, seq, error)
            raise error from e

        if session.proposal_seq != seq or session.plan is None or session.plan.version != snapshot.version:
            logger.info(f"Discarding late proposal for superseded request {seq}")
            raise EditError("The edit request was superseded", code="cancelled")

        session.pending_patch = patch
        session.add_message("assistant", f"I suggest this change: {patch.title}\n{patch.description}")
        logger.info(
            f"Session {session.session_id} has pending patch {patch.patch_id} "
            f"({len(patch.operations)} operations)"
        )
        return patch

    def _report_failure(self, session: TripSession, seq: int, error: EditError):
        if session.proposal_seq != seq:
            return
        message = describe_error(error)["message"]
        session.add_message("assistant", message)
        safe_notify(self.notifier, message, Severity.ERROR)


# Global engine instance
edit_engine: Optional[EditProposalEngine] = None


def get_edit_engine() -> EditProposalEngine:
    """Get or create the global edit proposal engine."""
    global edit_engine
    if edit_engine is None:
        edit_engine = EditProposalEngine()
    return edit_engine
