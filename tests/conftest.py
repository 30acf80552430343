"""Shared fixtures for trip conductor tests."""
from datetime import date

import pytest

from conductor.models.draft import DraftStore
from conductor.models.plan import Place, PlanModel, TripDay, TripPlan, VisitStep
from conductor.models.session import SessionPhase, TripSession
from conductor.services.entitlements import EntitlementGate, StaticSubscriptionSource
from conductor.services.notifications import ToastNotifier
from conductor.services.persistence import InMemoryStore, PlanRepository


def make_place(place_id: str, name: str = None) -> Place:
    return Place(place_id=place_id, name=name or place_id.title(), city="Krakow", lat=50.06, lon=19.94)


def make_plan() -> TripPlan:
    """One day with Visit(s1, p1) and Visit(s2, p2)."""
    return TripPlan(
        trip_id="trip-1",
        destination="Krakow",
        days=[
            TripDay(
                date=date(2026, 5, 1),
                steps=[
                    VisitStep(step_id="s1", place_id="p1"),
                    VisitStep(step_id="s2", place_id="p2"),
                ],
            )
        ],
        places={"p1": make_place("p1"), "p2": make_place("p2")},
    )


def make_two_day_plan() -> TripPlan:
    plan = make_plan()
    plan.days.append(
        TripDay(
            date=date(2026, 5, 2),
            steps=[VisitStep(step_id="s3", place_id="p1")],
        )
    )
    return plan


def fill_draft(store: DraftStore):
    """Fill every field the wizard requires."""
    store.set_destination("Krakow")
    store.set_date_range(date(2026, 5, 1), date(2026, 5, 3))
    store.set_people(1, 0)
    store.set_budget("moderate")
    store.toggle_interest("Historia")
    store.set_notes("")


def editing_session(plan: TripPlan = None) -> TripSession:
    return TripSession(phase=SessionPhase.EDITING, plan=PlanModel(plan or make_plan()))


@pytest.fixture
def repository():
    return PlanRepository(InMemoryStore())


@pytest.fixture
def notifier():
    return ToastNotifier()


@pytest.fixture
def premium_gate():
    return EntitlementGate(StaticSubscriptionSource("active", 3), free_trip_limit=1)


@pytest.fixture
def free_gate():
    return EntitlementGate(StaticSubscriptionSource("free", 0), free_trip_limit=1)
