"""
Plan Generator - Turns a frozen trip draft into a structured itinerary.
"""
import logging
import uuid
from datetime import timedelta
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from .llm_client import get_llm_client
from ..errors import GenerationError
from ..models.draft import DraftSnapshot
from ..models.plan import TripPlan

logger = logging.getLogger(__name__)

STEP_KINDS = {"visit", "transfer", "meal", "accommodation", "relax"}

PLANNER_SYSTEM_PROMPT = """You are a travel itinerary planner. Generate a realistic, day-wise travel itinerary.

YOUR JOB:
1. Create one entry in "days" for every date of the trip, in date order
2. Fill each day with an ordered sequence of steps
3. Register every place a step refers to in "places"
4. Respect the budget level, the number of travelers and their interests

STRICT RULES:
- Every place_id used by a step MUST appear in "places"
- Every step_id MUST be unique across the whole plan
- Step kinds: visit (place_id required), transfer (from_place_id, to_place_id, move_mode),
  meal, accommodation, relax (place_id optional)
- move_mode is one of: walk, public_transport, taxi, car

OUTPUT FORMAT - Return ONLY valid JSON:
{
  "summary": "Brief 1-2 sentence trip summary",
  "days": [
    {
      "date": "YYYY-MM-DD",
      "city": "City name",
      "theme": "Day theme",
      "steps": [
        {"step_id": "d1_s1", "kind": "visit", "place_id": "KRK_WAWEL", "planned_start": "09:00", "planned_end": "11:00"}
      ]
    }
  ],
  "places": [
    {"place_id": "KRK_WAWEL", "name": "Wawel Castle", "city": "Krakow", "country": "Poland",
     "lat": 50.054, "lon": 19.935, "categories": ["history"], "typical_visit_duration_min": 120,
     "short_intro": "One sentence introduction"}
  ]
}"""


class PlanGenerator:
    """Generates trip plans from frozen drafts."""

    def __init__(self, llm=None):
        self.llm = llm or get_llm_client()

    async def generate(self, draft: DraftSnapshot) -> TripPlan:
        """
        Generate a new plan for a completed draft.

        Args:
            draft: Frozen snapshot of the wizard answers

        Returns:
            Generated TripPlan (not yet integrity-checked)

        Raises:
            GenerationError: the provider failed or returned unusable data
        """
        messages = [
            {"role": "system", "content": PLANNER_SYSTEM_PROMPT},
            {"role": "user", "content": f"""TRIP REQUEST (JSON):
{draft.model_dump_json()}

{self._format_constraints(draft)}

Generate the itinerary now."""}
        ]

        try:
            result = await self.llm.chat_json(messages, temperature=0.7, max_tokens=3000)
        except Exception as e:
            logger.error(f"Plan generation call failed: {e}")
            raise GenerationError(f"Plan generation failed: {e}", code="llm_error")

        if not result or not result.get("days"):
            raise GenerationError("Generator returned no days", code="invalid_response")

        return self._parse_plan(result, draft)

    def _format_constraints(self, draft: DraftSnapshot) -> str:
        """Format draft data as readable constraints."""
        lines = [f"- Destination: {draft.destination}"]
        if draft.date_range:
            lines.append(f"- Dates: {draft.date_range.start} to {draft.date_range.end} ({draft.duration_days} days)")
        lines.append(f"- Travelers: {draft.people.adults} adults, {draft.people.children} children")
        if draft.budget:
            lines.append(f"- Budget: {draft.budget.value}")
        if draft.interests:
            lines.append(f"- Interests: {', '.join(draft.interests)}")
        if draft.notes:
            lines.append(f"- Notes: {draft.notes}")
        return "\n".join(lines)

    def _parse_plan(self, data: dict, draft: DraftSnapshot) -> TripPlan:
        """Parse LLM response into a TripPlan."""
        days = []
        start = draft.date_range.start if draft.date_range else None
        for offset, day_data in enumerate(data.get("days", [])):
            steps = []
            for step_data in day_data.get("steps", []):
                kind = str(step_data.get("kind", "relax")).lower()
                if kind not in STEP_KINDS:
                    logger.warning(f"Unknown step kind {kind!r}, treating as relax")
                    kind = "relax"
                steps.append({**step_data, "kind": kind})

            day_date = day_data.get("date")
            if not day_date and start is not None:
                day_date = (start + timedelta(days=offset)).isoformat()
            days.append({
                "date": day_date,
                "city": day_data.get("city") or draft.destination or "",
                "theme": day_data.get("theme") or "",
                "steps": steps,
            })

        places = data.get("places", {})
        if isinstance(places, list):
            places = {p.get("place_id"): p for p in places if isinstance(p, dict)}

        try:
            return TripPlan.model_validate({
                "trip_id": str(uuid.uuid4()),
                "destination": draft.destination or "",
                "summary": data.get("summary", "Travel itinerary"),
                "days": days,
                "places": places,
            })
        except PydanticValidationError as e:
            logger.error(f"Generated plan failed validation: {e}")
            raise GenerationError(
                f"Generated plan is malformed ({e.error_count()} errors)",
                code="invalid_response",
            )


# Global generator instance
generator: Optional[PlanGenerator] = None


def get_generator() -> PlanGenerator:
    """Get or create the global plan generator."""
    global generator
    if generator is None:
        generator = PlanGenerator()
    return generator
