"""
Trip Draft - The in-progress trip request built up by the wizard.
"""
import logging
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)

NOTES_MAX_LENGTH = 200

SUGGESTED_INTERESTS = [
    "Sightseeing", "Art", "Food", "Nature",
    "Sport", "History", "Shopping", "Relaxation",
    "Music", "Architecture", "Photography", "Nightlife",
]


class BudgetLevel(str, Enum):
    """Trip budget levels."""
    BUDGET = "budget"
    MODERATE = "moderate"
    LUXURY = "luxury"


class DateRange(BaseModel):
    """Inclusive travel dates."""
    start: date
    end: date

    @model_validator(mode="after")
    def check_order(self) -> "DateRange":
        if self.start > self.end:
            raise ValueError("start date must not be after end date")
        return self

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


class People(BaseModel):
    """Travelers on the trip."""
    adults: int = Field(1, ge=1, description="Travelers aged 13+")
    children: int = Field(0, ge=0, description="Travelers under 13")

    @property
    def total(self) -> int:
        return self.adults + self.children


class TripDraft(BaseModel):
    """Answers collected by the wizard so far."""
    destination: Optional[str] = Field(
        None,
        description="Where the trip goes"
    )
    date_range: Optional[DateRange] = Field(
        None,
        description="Inclusive trip dates"
    )
    people: People = Field(
        default_factory=People,
        description="Adults and children traveling"
    )
    budget: Optional[BudgetLevel] = Field(
        None,
        description="Trip budget level"
    )
    interests: list[str] = Field(
        default_factory=list,
        description="Distinct interests selected by the user"
    )
    notes: str = Field(
        "",
        description="Free-text notes, at most 200 characters"
    )

    @field_validator("destination", mode="before")
    @classmethod
    def validate_destination(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("interests", mode="before")
    @classmethod
    def validate_interests(cls, v):
        if v is None:
            return []
        cleaned = []
        for item in v:
            if isinstance(item, str):
                item = item.strip()
                if not item:
                    continue
            if item not in cleaned:
                cleaned.append(item)
        return cleaned

    @field_validator("notes", mode="before")
    @classmethod
    def clamp_notes(cls, v):
        if v is None:
            return ""
        if isinstance(v, str):
            return v[:NOTES_MAX_LENGTH]
        return v

    @property
    def duration_days(self) -> int:
        return self.date_range.days if self.date_range else 0

    def get_filled_fields(self) -> dict:
        """Return dict of fields that have values, JSON-friendly."""
        data = self.model_dump(mode="json")
        return {
            key: value for key, value in data.items()
            if value not in (None, "", [])
        }


class DraftSnapshot(TripDraft):
    """Read-only copy of a completed draft, handed to plan generation."""
    model_config = ConfigDict(frozen=True)

    interests: tuple[str, ...] = ()


class DraftStore:
    """
    Holds the draft and exposes point mutations.

    Each setter validates only its own field. Rejected values leave the
    draft unchanged: the setter returns False, logs a warning and records
    the reason in ``last_rejection``.
    """

    def __init__(self, draft: Optional[TripDraft] = None):
        self._draft = draft.model_copy(deep=True) if draft else TripDraft()
        self._frozen = False
        self.last_rejection: Optional[str] = None

    @property
    def draft(self) -> TripDraft:
        return self._draft.model_copy(deep=True)

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def _reject(self, field: str, reason: str) -> bool:
        self.last_rejection = f"{field}: {reason}"
        logger.warning(f"Rejected draft update for {field}: {reason}")
        return False

    def _write(self, field: str, value: Any) -> bool:
        if self._frozen:
            return self._reject(field, "draft is frozen")
        try:
            draft = TripDraft.model_validate({**self._draft.model_dump(), field: value})
        except PydanticValidationError as e:
            return self._reject(field, e.errors()[0]["msg"])
        self._draft = draft
        self.last_rejection = None
        return True

    def set_destination(self, destination: Optional[str]) -> bool:
        value = destination.strip() if isinstance(destination, str) else destination
        return self._write("destination", value or None)

    def set_date_range(self, start: Optional[date], end: Optional[date]) -> bool:
        if start is None and end is None:
            return self._write("date_range", None)
        if start is None or end is None:
            return self._reject("date_range", "both start and end are required")
        if isinstance(start, datetime):
            start = start.date()
        if isinstance(end, datetime):
            end = end.date()
        try:
            date_range = DateRange(start=start, end=end)
        except PydanticValidationError as e:
            return self._reject("date_range", e.errors()[0]["msg"])
        return self._write("date_range", date_range)

    def set_people(self, adults: int, children: int = 0) -> bool:
        if not isinstance(adults, int) or not isinstance(children, int):
            return self._reject("people", f"counts must be whole numbers, got {adults!r} and {children!r}")
        if adults < 1:
            return self._reject("people", f"adults must be at least 1, got {adults}")
        if children < 0:
            return self._reject("people", f"children must not be negative, got {children}")
        return self._write("people", People(adults=adults, children=children))

    def set_budget(self, budget: Optional[str]) -> bool:
        if budget is None:
            return self._write("budget", None)
        try:
            level = BudgetLevel(budget)
        except (ValueError, TypeError):
            return self._reject("budget", f"unknown budget level {budget!r}")
        return self._write("budget", level)

    def toggle_interest(self, interest: str) -> bool:
        if not isinstance(interest, str):
            return self._reject("interests", f"interest must be text, got {interest!r}")
        interest = interest.strip()
        if not interest:
            return self._reject("interests", "interest must not be empty")
        interests = list(self._draft.interests)
        if interest in interests:
            interests.remove(interest)
        else:
            interests.append(interest)
        return self._write("interests", interests)

    def set_notes(self, notes: Optional[str]) -> bool:
        if notes is not None and not isinstance(notes, str):
            return self._reject("notes", f"notes must be text, got {notes!r}")
        notes = notes or ""
        if len(notes) > NOTES_MAX_LENGTH:
            logger.info(f"Clamping notes from {len(notes)} to {NOTES_MAX_LENGTH} characters")
            notes = notes[:NOTES_MAX_LENGTH]
        return self._write("notes", notes)

    def restore(self, data: dict) -> TripDraft:
        """
        Rebuild the draft from serialized data without step validation.

        Fields that cannot hold a valid value are dropped back to their
        defaults so the store never holds an invalid draft.
        """
        try:
            draft = TripDraft.model_validate(data)
        except PydanticValidationError as e:
            logger.warning(f"Restored draft has invalid fields, salvaging: {e.error_count()} errors")
            salvaged = {}
            for name in TripDraft.model_fields:
                if name not in data:
                    continue
                try:
                    TripDraft.model_validate({name: data[name]})
                except PydanticValidationError:
                    logger.warning(f"Dropping invalid {name} from restored draft")
                    continue
                salvaged[name] = data[name]
            draft = TripDraft.model_validate(salvaged)

        self._draft = draft
        self._frozen = False
        self.last_rejection = None
        return self.draft

    def freeze(self) -> DraftSnapshot:
        """Make the store read-only and return an immutable snapshot."""
        self._frozen = True
        return DraftSnapshot.model_validate(self._draft.model_dump())

    def thaw(self):
        self._frozen = False

    def reset(self):
        self._draft = TripDraft()
        self._frozen = False
        self.last_rejection = None
