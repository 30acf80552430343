"""
Mutation Applier - Commits or discards the pending patch.
"""
import logging
from typing import Optional

from .notifications import Severity, get_notifier, safe_notify
from .persistence import get_repository
from ..errors import IntegrityViolation, SessionStateError
from ..models.patch import Patch
from ..models.plan import TripPlan
from ..models.session import TripSession

logger = logging.getLogger(__name__)


class MutationApplier:
    """Applies confirmed patches all-or-nothing."""

    def __init__(self, repository=None, notifier=None):
        self.repository = repository or get_repository()
        self.notifier = notifier if notifier is not None else get_notifier()

    def confirm(self, session: TripSession) -> TripPlan:
        """
        Apply every operation of the pending patch, or none of them.

        The pending slot is cleared whatever the outcome. On IntegrityViolation
        the committed plan is exactly what it was before the call.
        """
        patch = session.pending_patch
        if patch is None or session.plan is None:
            raise SessionStateError("There is no proposed change to confirm")
        session.pending_patch = None

        try:
            if patch.base_version != session.plan.version:
                raise IntegrityViolation([
                    f"patch was proposed for version {patch.base_version}, "
                    f"plan is at version {session.plan.version}"
                ])
            snapshot = session.plan.apply(patch.operations)
        except IntegrityViolation as e:
            logger.error(f"Rejected patch {patch.patch_id} for plan {session.plan.trip_id}: {e.problems}")
            session.add_message("assistant", "That change could not be applied. Your plan was not modified.")
            safe_notify(self.notifier, "The change could not be applied", Severity.ERROR)
            raise

        self.repository.save_plan(snapshot)
        session.add_message("assistant", "The plan has been updated! Anything else I can help with?")
        safe_notify(self.notifier, f"Plan updated: {patch.title}", Severity.SUCCESS)
        return snapshot

    def cancel(self, session: TripSession) -> Optional[Patch]:
        """
        Discard the pending patch, if any. The plan is not touched.

        A proposal still being prepared is superseded and dropped on arrival.
        """
        patch = session.pending_patch
        session.pending_patch = None
        session.proposal_seq += 1
        if patch is not None:
            logger.info(f"Session {session.session_id} cancelled patch {patch.patch_id}")
            session.add_message("assistant", "Change cancelled.")
            safe_notify(self.notifier, "Change cancelled", Severity.INFO)
        return patch


# Global applier instance
mutation_applier: Optional[MutationApplier] = None


def get_mutation_applier() -> MutationApplier:
    """Get or create the global mutation applier."""
    global mutation_applier
    if mutation_applier is None:
        mutation_applier = MutationApplier()
    return mutation_applier
