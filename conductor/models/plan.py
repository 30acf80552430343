"""
Trip Plan models - Structured itinerary of days, steps and places.
"""
import datetime as dt
import logging
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from ..errors import IntegrityViolation

logger = logging.getLogger(__name__)


class StepStatus(str, Enum):
    """Progress of a single itinerary step."""
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"


class MoveMode(str, Enum):
    """How a transfer step is made."""
    WALK = "walk"
    PUBLIC_TRANSPORT = "public_transport"
    TAXI = "taxi"
    CAR = "car"


class BaseStep(BaseModel):
    """Fields shared by every step kind."""
    step_id: str = Field(..., min_length=1, description="Unique across the whole plan")
    planned_start: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$", description="HH:MM")
    planned_end: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$", description="HH:MM")
    notes: Optional[str] = None
    status: StepStatus = StepStatus.PLANNED
    cost: Optional[str] = Field(None, description="Free-form cost hint, e.g. '40 EUR'")


class VisitStep(BaseStep):
    """Visiting a place."""
    kind: Literal["visit"] = "visit"
    place_id: str = Field(..., min_length=1)


class TransferStep(BaseStep):
    """Moving between two places."""
    kind: Literal["transfer"] = "transfer"
    from_place_id: str
    to_place_id: str
    move_mode: MoveMode = MoveMode.WALK
    est_duration_min: int = Field(15, ge=0)
    route_hint: Optional[str] = None


class MealStep(BaseStep):
    """Eating, optionally at a known place."""
    kind: Literal["meal"] = "meal"
    place_id: Optional[str] = None


class AccommodationStep(BaseStep):
    """Hotel or hostel stay."""
    kind: Literal["accommodation"] = "accommodation"
    place_id: Optional[str] = None


class RelaxStep(BaseStep):
    """Free time."""
    kind: Literal["relax"] = "relax"
    place_id: Optional[str] = None


Step = Annotated[
    Union[VisitStep, TransferStep, MealStep, AccommodationStep, RelaxStep],
    Field(discriminator="kind"),
]


def step_place_refs(step: BaseStep) -> list[str]:
    """Place ids a step points at."""
    if isinstance(step, VisitStep):
        return [step.place_id]
    if isinstance(step, TransferStep):
        return [step.from_place_id, step.to_place_id]
    if isinstance(step, (MealStep, AccommodationStep, RelaxStep)):
        return [step.place_id] if step.place_id else []
    raise TypeError(f"Unknown step kind: {type(step).__name__}")


class Place(BaseModel):
    """A location referenced by steps."""
    place_id: str = Field(..., min_length=1, description="Unique within the trip, e.g. ROM_COLOSSEUM")
    name: str
    city: str = ""
    country: str = ""
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)
    categories: list[str] = Field(default_factory=list)
    typical_visit_duration_min: int = Field(60, ge=0)
    short_intro: str = ""


class TripDay(BaseModel):
    """One day of the itinerary."""
    date: dt.date
    city: str = ""
    theme: str = ""
    steps: list[Step] = Field(default_factory=list)


class TripPlan(BaseModel):
    """Complete generated itinerary."""
    trip_id: str
    destination: str = ""
    summary: str = ""
    version: int = Field(default=1, ge=1)
    created_at: dt.datetime = Field(default_factory=dt.datetime.now)
    days: list[TripDay] = Field(default_factory=list)
    places: dict[str, Place] = Field(default_factory=dict)

    def get_day(self, day: dt.date) -> Optional[TripDay]:
        return next((d for d in self.days if d.date == day), None)

    def find_step(self, step_id: str) -> Optional[tuple[TripDay, int]]:
        """Return the day holding a step and its position in that day."""
        for day in self.days:
            for index, step in enumerate(day.steps):
                if step.step_id == step_id:
                    return day, index
        return None

    def step_ids(self) -> list[str]:
        return [step.step_id for day in self.days for step in day.steps]

    def to_display_dict(self) -> dict:
        """Convert to display-friendly dictionary."""
        return {
            "trip_id": self.trip_id,
            "destination": self.destination,
            "version": self.version,
            "summary": self.summary,
            "total_days": len(self.days),
            "days": [
                {
                    "date": day.date.isoformat(),
                    "city": day.city,
                    "theme": day.theme,
                    "steps": [
                        {
                            "step_id": step.step_id,
                            "kind": step.kind,
                            "time": step.planned_start,
                            "places": [
                                self.places[ref].name
                                for ref in step_place_refs(step)
                                if ref in self.places
                            ],
                        }
                        for step in day.steps
                    ],
                }
                for day in self.days
            ],
        }


def check_integrity(plan: TripPlan) -> list[str]:
    """Return every invariant the plan breaks; empty when consistent."""
    problems = []

    for key, place in plan.places.items():
        if key != place.place_id:
            problems.append(f"place registered as '{key}' has place_id '{place.place_id}'")

    seen_steps = set()
    previous_date = None
    for day in plan.days:
        if previous_date is not None and day.date <= previous_date:
            problems.append(f"day {day.date} is duplicated or out of order")
        previous_date = day.date

        for step in day.steps:
            if step.step_id in seen_steps:
                problems.append(f"duplicate step_id '{step.step_id}'")
            seen_steps.add(step.step_id)
            for ref in step_place_refs(step):
                if ref not in plan.places:
                    problems.append(f"step '{step.step_id}' references missing place '{ref}'")

    return problems


class PlanModel:
    """
    Owner of the committed trip plan.

    Readers only ever see copies. ``apply`` works on a private copy and swaps
    it in only once every operation succeeded and the integrity check passes,
    so no reader can observe an intermediate state.
    """

    def __init__(self, plan: TripPlan):
        plan = plan.model_copy(deep=True)
        plan.days.sort(key=lambda d: d.date)
        problems = check_integrity(plan)
        if problems:
            logger.error(f"Rejected plan {plan.trip_id}: {problems}")
            raise IntegrityViolation(problems)
        self._plan = plan

    @property
    def trip_id(self) -> str:
        return self._plan.trip_id

    @property
    def version(self) -> int:
        return self._plan.version

    def snapshot(self) -> TripPlan:
        return self._plan.model_copy(deep=True)

    def apply(self, operations: list) -> TripPlan:
        """Apply operations all-or-nothing and return the new snapshot."""
        working = self._plan.model_copy(deep=True)
        for operation in operations:
            operation.apply_to(working)

        working.days.sort(key=lambda d: d.date)
        problems = check_integrity(working)
        if problems:
            raise IntegrityViolation(problems)

        working.version = self._plan.version + 1
        self._plan = working
        logger.info(f"Plan {self.trip_id} committed version {self.version} ({len(operations)} operations)")
        return self.snapshot()
