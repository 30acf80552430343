"""
Edit Proposer - Asks the LLM for a patch that fulfils a user's edit request.
"""
import logging
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from .llm_client import get_llm_client
from ..errors import EditError
from ..models.patch import Patch
from ..models.plan import TripPlan

logger = logging.getLogger(__name__)


EDITOR_SYSTEM_PROMPT = """You edit an existing travel itinerary. Do NOT rewrite the plan.
Return the smallest list of operations that fulfils the user's request.

OPERATIONS (address steps and places by id, days by date):
- {"op": "insert_step", "day": "YYYY-MM-DD", "step": {...}, "after_step_id": "id" | null, "before_step_id": "id" | null}
- {"op": "remove_step", "step_id": "id"}
- {"op": "move_step", "step_id": "id", "to_day": "YYYY-MM-DD" | null, "after_step_id": "id" | null, "before_step_id": "id" | null}
- {"op": "add_place", "place": {"place_id": "...", "name": "...", "lat": 0.0, "lon": 0.0, ...}}
- {"op": "update_place", "place_id": "id", "changes": {...}}
- {"op": "remove_place", "place_id": "id"}
- {"op": "change_day_date", "day": "YYYY-MM-DD", "new_date": "YYYY-MM-DD"}

RULES:
- New step_ids must not collide with existing ones
- Every place a step references must exist or be added in the same response
- Never remove a place that a remaining step still references

OUTPUT FORMAT - Return ONLY valid JSON:
{"title": "Short title", "description": "One or two sentences for the user", "operations": [...]}"""


class EditProposer:
    """Produces patches for natural-language edit requests."""

    def __init__(self, llm=None):
        self.llm = llm or get_llm_client()

    async def propose_edit(self, plan: TripPlan, instruction: str) -> Patch:
        """
        Propose a patch for the given plan.

        Raises:
            EditError: the provider failed or returned an unusable patch
        """
        messages = [
            {"role": "system", "content": EDITOR_SYSTEM_PROMPT},
            {"role": "user", "content": f"""CURRENT PLAN (JSON):
{plan.model_dump_json(exclude={"created_at"})}

EDIT REQUEST:
{instruction}"""}
        ]

        try:
            result = await self.llm.chat_json(messages, temperature=0.3, max_tokens=2000)
        except Exception as e:
            logger.error(f"Edit proposal call failed: {e}")
            raise EditError(f"Edit proposal failed: {e}", code="llm_error")

        if not result or not result.get("title"):
            raise EditError("Editor returned no proposal", code="invalid_response")

        try:
            return Patch.model_validate({
                "base_version": plan.version,
                "title": result["title"],
                "description": result.get("description", ""),
                "operations": result.get("operations", []),
            })
        except PydanticValidationError as e:
            logger.error(f"Proposed patch failed validation: {e}")
            raise EditError(
                f"Proposed patch is malformed ({e.error_count()} errors)",
                code="invalid_response",
            )


# Global proposer instance
proposer: Optional[EditProposer] = None


def get_edit_proposer() -> EditProposer:
    """Get or create the global edit proposer."""
    global proposer
    if proposer is None:
        proposer = EditProposer()
    return proposer
