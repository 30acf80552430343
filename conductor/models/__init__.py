"""Data models for the trip conductor."""
from .draft import TripDraft, DraftSnapshot, DraftStore, BudgetLevel
from .plan import TripPlan, TripDay, Place, PlanModel
from .patch import Patch
from .session import TripSession, SessionPhase, WizardStep

__all__ = [
    "TripDraft",
    "DraftSnapshot",
    "DraftStore",
    "BudgetLevel",
    "TripPlan",
    "TripDay",
    "Place",
    "PlanModel",
    "Patch",
    "TripSession",
    "SessionPhase",
    "WizardStep",
]
