"""
Mock LLM Client - Offline, deterministic stand-in for a real provider.
Builds plans and edit patches from the JSON embedded in the prompts.
"""
import json
import logging
import re
from datetime import date, timedelta
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

MAX_MOCK_DAYS = 14

# Coordinates used when the destination is unknown
DEFAULT_CENTER = (50.0614, 19.9366)

CITY_CENTERS = {
    "krakow": (50.0614, 19.9366),
    "paris": (48.8566, 2.3522),
    "rome": (41.9028, 12.4964),
    "warsaw": (52.2297, 21.0122),
    "barcelona": (41.3874, 2.1686),
}


def _extract_json_block(text: str, label: str) -> Dict[str, Any]:
    """Find the JSON object following a 'LABEL (JSON):' header."""
    marker = text.find(f"{label} (JSON):")
    if marker == -1:
        return {}
    brace = text.find("{", marker)
    if brace == -1:
        return {}
    try:
        data, _ = json.JSONDecoder().raw_decode(text, brace)
    except json.JSONDecodeError:
        logger.warning(f"Mock LLM could not parse {label} block")
        return {}
    return data if isinstance(data, dict) else {}


def _slug(text: str) -> str:
    return re.sub(r"[^A-Z0-9]+", "_", text.upper()).strip("_") or "PLACE"


class MockLLMClient:
    """Deterministic mock used when llm_provider is 'mock'."""

    def __init__(self):
        self.model = "mock-deterministic"

    async def chat(
        self,
        messages: list[dict],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False
    ) -> str:
        """Answer generation and edit prompts."""
        user_msg = next((m["content"] for m in reversed(messages) if m["role"] == "user"), "")
        system_msg = next((m["content"] for m in messages if m["role"] == "system"), "")

        if "EDIT REQUEST" in user_msg:
            return json.dumps(self._propose_edit(user_msg))
        if "itinerary" in system_msg.lower():
            return json.dumps(self._generate_plan(user_msg))
        return "I can help you plan and adjust your trip."

    def _generate_plan(self, user_msg: str) -> Dict[str, Any]:
        request = _extract_json_block(user_msg, "TRIP REQUEST")
        destination = request.get("destination") or "Krakow"
        date_range = request.get("date_range") or {}
        start = date.fromisoformat(date_range["start"]) if date_range.get("start") else date.today()
        end = date.fromisoformat(date_range["end"]) if date_range.get("end") else start
        interests = request.get("interests") or ["Sightseeing"]
        lat, lon = CITY_CENTERS.get(destination.lower(), DEFAULT_CENTER)
        prefix = _slug(destination)[:3]

        places = []
        days = []
        total_days = min((end - start).days + 1, MAX_MOCK_DAYS)
        for offset in range(total_days):
            day_no = offset + 1
            interest = interests[offset % len(interests)]
            visit_id = f"{prefix}_{_slug(interest)}_{day_no}"
            lunch_id = f"{prefix}_LUNCH_{day_no}"
            places.append({
                "place_id": visit_id,
                "name": f"{destination} {interest} highlight {day_no}",
                "city": destination,
                "lat": round(lat + 0.001 * day_no, 6),
                "lon": round(lon + 0.001 * day_no, 6),
                "categories": [interest.lower()],
                "typical_visit_duration_min": 90,
            })
            places.append({
                "place_id": lunch_id,
                "name": f"{destination} bistro {day_no}",
                "city": destination,
                "lat": round(lat - 0.001 * day_no, 6),
                "lon": round(lon - 0.001 * day_no, 6),
                "categories": ["restaurant"],
                "typical_visit_duration_min": 60,
            })
            days.append({
                "date": (start + timedelta(days=offset)).isoformat(),
                "city": destination,
                "theme": f"{interest} day",
                "steps": [
                    {"step_id": f"d{day_no}_s1", "kind": "visit", "place_id": visit_id,
                     "planned_start": "09:30", "planned_end": "11:00"},
                    {"step_id": f"d{day_no}_s2", "kind": "transfer", "from_place_id": visit_id,
                     "to_place_id": lunch_id, "move_mode": "walk", "est_duration_min": 15},
                    {"step_id": f"d{day_no}_s3", "kind": "meal", "place_id": lunch_id,
                     "planned_start": "12:30", "planned_end": "13:30"},
                    {"step_id": f"d{day_no}_s4", "kind": "relax",
                     "planned_start": "15:00", "planned_end": "16:00"},
                ],
            })

        return {
            "summary": f"{total_days}-day trip to {destination} focused on {', '.join(interests)}",
            "days": days,
            "places": places,
        }

    def _propose_edit(self, user_msg: str) -> Dict[str, Any]:
        plan = _extract_json_block(user_msg, "CURRENT PLAN")
        instruction = user_msg.split("EDIT REQUEST:", 1)[-1].strip().lower()
        days = plan.get("days") or []
        if not days:
            return {"title": "No changes", "description": "The plan has no days to edit.", "operations": []}

        first_day = days[0]
        if any(word in instruction for word in ("remove", "skip", "delete", "drop")):
            visits = [s for s in first_day.get("steps", []) if s.get("kind") == "visit"]
            if visits:
                target = visits[-1]
                return {
                    "title": "Remove a visit",
                    "description": f"Skip step {target['step_id']} on {first_day['date']}.",
                    "operations": [
                        {"op": "remove_step", "step_id": target["step_id"]},
                    ],
                }

        place_id = "MOCK_DINNER"
        n = 1
        while place_id in (plan.get("places") or {}):
            n += 1
            place_id = f"MOCK_DINNER_{n}"
        return {
            "title": "Add dinner",
            "description": f"Dinner at a local restaurant on {first_day['date']} (19:00, 2h).",
            "operations": [
                {
                    "op": "add_place",
                    "place": {
                        "place_id": place_id,
                        "name": "Local restaurant",
                        "city": first_day.get("city", ""),
                        "lat": DEFAULT_CENTER[0],
                        "lon": DEFAULT_CENTER[1],
                        "categories": ["restaurant"],
                    },
                },
                {
                    "op": "insert_step",
                    "day": first_day["date"],
                    "step": {
                        "step_id": f"{place_id.lower()}_meal",
                        "kind": "meal",
                        "place_id": place_id,
                        "planned_start": "19:00",
                        "planned_end": "21:00",
                        "cost": "$$$",
                    },
                },
            ],
        }
