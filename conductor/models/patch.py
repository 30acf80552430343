"""
Patch models - Proposed, unapplied edits to a trip plan.

Operations address days by date and steps/places by identifier, never by
list index, so earlier operations in a patch cannot shift the targets of
later ones.
"""
import datetime as dt
import uuid
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..errors import IntegrityViolation
from .plan import Place, Step, TripDay, TripPlan


def _require_day(plan: TripPlan, day: dt.date) -> TripDay:
    found = plan.get_day(day)
    if found is None:
        raise IntegrityViolation([f"day {day} does not exist"])
    return found


def _anchor_index(day: TripDay, after_step_id: Optional[str], before_step_id: Optional[str]) -> int:
    """Resolve an insertion position from an anchor step; append when none."""
    if after_step_id and before_step_id:
        raise IntegrityViolation(["only one of after_step_id and before_step_id may be set"])
    anchor = after_step_id or before_step_id
    if anchor is None:
        return len(day.steps)
    for index, step in enumerate(day.steps):
        if step.step_id == anchor:
            return index + 1 if after_step_id else index
    raise IntegrityViolation([f"anchor step '{anchor}' is not on day {day.date}"])


class InsertStep(BaseModel):
    """Insert a new step into a day."""
    op: Literal["insert_step"] = "insert_step"
    day: dt.date
    step: Step
    after_step_id: Optional[str] = None
    before_step_id: Optional[str] = None

    def apply_to(self, plan: TripPlan):
        target = _require_day(plan, self.day)
        index = _anchor_index(target, self.after_step_id, self.before_step_id)
        target.steps.insert(index, self.step.model_copy(deep=True))

    def describe(self) -> str:
        return f"Add {self.step.kind} step on {self.day}"


class RemoveStep(BaseModel):
    """Remove a step wherever it is."""
    op: Literal["remove_step"] = "remove_step"
    step_id: str

    def apply_to(self, plan: TripPlan):
        found = plan.find_step(self.step_id)
        if found is None:
            raise IntegrityViolation([f"step '{self.step_id}' does not exist"])
        day, index = found
        del day.steps[index]

    def describe(self) -> str:
        return f"Remove step {self.step_id}"


class MoveStep(BaseModel):
    """Reorder a step within its day or move it to another day."""
    op: Literal["move_step"] = "move_step"
    step_id: str
    to_day: Optional[dt.date] = None
    after_step_id: Optional[str] = None
    before_step_id: Optional[str] = None

    def apply_to(self, plan: TripPlan):
        if self.step_id in (self.after_step_id, self.before_step_id):
            raise IntegrityViolation([f"step '{self.step_id}' cannot be anchored on itself"])
        found = plan.find_step(self.step_id)
        if found is None:
            raise IntegrityViolation([f"step '{self.step_id}' does not exist"])
        source, index = found
        target = _require_day(plan, self.to_day) if self.to_day else source
        step = source.steps.pop(index)
        target.steps.insert(_anchor_index(target, self.after_step_id, self.before_step_id), step)

    def describe(self) -> str:
        return f"Move step {self.step_id}"


class AddPlace(BaseModel):
    """Register a new place."""
    op: Literal["add_place"] = "add_place"
    place: Place

    def apply_to(self, plan: TripPlan):
        if self.place.place_id in plan.places:
            raise IntegrityViolation([f"place '{self.place.place_id}' already exists"])
        plan.places[self.place.place_id] = self.place.model_copy(deep=True)

    def describe(self) -> str:
        return f"Add place {self.place.name}"


class UpdatePlace(BaseModel):
    """Change fields of an existing place."""
    op: Literal["update_place"] = "update_place"
    place_id: str
    changes: dict[str, Any] = Field(default_factory=dict)

    def apply_to(self, plan: TripPlan):
        current = plan.places.get(self.place_id)
        if current is None:
            raise IntegrityViolation([f"place '{self.place_id}' does not exist"])
        if self.changes.get("place_id", self.place_id) != self.place_id:
            raise IntegrityViolation([f"place '{self.place_id}' cannot change its id"])
        try:
            plan.places[self.place_id] = Place.model_validate({**current.model_dump(), **self.changes})
        except PydanticValidationError as e:
            raise IntegrityViolation([f"invalid update for place '{self.place_id}': {e.error_count()} errors"])

    def describe(self) -> str:
        return f"Update place {self.place_id}"


class RemovePlace(BaseModel):
    """Unregister a place. Steps must no longer reference it."""
    op: Literal["remove_place"] = "remove_place"
    place_id: str

    def apply_to(self, plan: TripPlan):
        if self.place_id not in plan.places:
            raise IntegrityViolation([f"place '{self.place_id}' does not exist"])
        del plan.places[self.place_id]

    def describe(self) -> str:
        return f"Remove place {self.place_id}"


class ChangeDayDate(BaseModel):
    """Move a whole day to another date."""
    op: Literal["change_day_date"] = "change_day_date"
    day: dt.date
    new_date: dt.date

    def apply_to(self, plan: TripPlan):
        target = _require_day(plan, self.day)
        if self.new_date != self.day and plan.get_day(self.new_date) is not None:
            raise IntegrityViolation([f"day {self.new_date} already exists"])
        target.date = self.new_date

    def describe(self) -> str:
        return f"Move day {self.day} to {self.new_date}"


PlanOperation = Annotated[
    Union[InsertStep, RemoveStep, MoveStep, AddPlace, UpdatePlace, RemovePlace, ChangeDayDate],
    Field(discriminator="op"),
]


class Patch(BaseModel):
    """A proposed set of plan operations with a summary for confirmation."""
    patch_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    base_version: int = Field(..., ge=1, description="Plan version the patch was proposed against")
    title: str
    description: str = ""
    operations: list[PlanOperation] = Field(default_factory=list)
    created_at: dt.datetime = Field(default_factory=dt.datetime.now)

    def to_display_dict(self) -> dict:
        return {
            "patch_id": self.patch_id,
            "title": self.title,
            "description": self.description,
            "changes": [operation.describe() for operation in self.operations],
        }
