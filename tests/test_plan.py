"""Tests for trip plan integrity and patch operations."""
import pytest
from datetime import date

from conductor.errors import IntegrityViolation
from conductor.models.patch import (
    AddPlace,
    ChangeDayDate,
    InsertStep,
    MoveStep,
    Patch,
    RemovePlace,
    RemoveStep,
    UpdatePlace,
)
from conductor.models.plan import (
    MealStep,
    PlanModel,
    TransferStep,
    TripDay,
    VisitStep,
    check_integrity,
    step_place_refs,
)

from conftest import make_place, make_plan, make_two_day_plan


def step_order(plan, day):
    return [step.step_id for step in plan.get_day(day).steps]


MAY_1 = date(2026, 5, 1)
MAY_2 = date(2026, 5, 2)


class TestIntegrity:
    """Test the plan integrity check."""

    def test_consistent_plan(self):
        """Test the sample plan has no problems."""
        assert check_integrity(make_plan()) == []

    def test_dangling_place(self):
        """Test a step pointing at an unknown place."""
        plan = make_plan()
        del plan.places["p2"]

        problems = check_integrity(plan)

        assert len(problems) == 1
        assert "p2" in problems[0]

    def test_transfer_references_checked(self):
        """Test both ends of a transfer must exist."""
        plan = make_plan()
        plan.days[0].steps.append(TransferStep(step_id="t1", from_place_id="p1", to_place_id="p9"))

        assert any("p9" in p for p in check_integrity(plan))

    def test_duplicate_step_id(self):
        """Test step ids must be unique across days."""
        plan = make_two_day_plan()
        plan.days[1].steps.append(VisitStep(step_id="s1", place_id="p1"))

        assert any("duplicate step_id 's1'" in p for p in check_integrity(plan))

    def test_duplicate_day(self):
        """Test two days on the same date."""
        plan = make_plan()
        plan.days.append(TripDay(date=MAY_1))

        assert check_integrity(plan)

    def test_mismatched_place_key(self):
        """Test places are registered under their own id."""
        plan = make_plan()
        plan.places["p3"] = make_place("p4")

        assert check_integrity(plan)

    def test_step_refs(self):
        """Test place references of each step kind."""
        assert step_place_refs(VisitStep(step_id="a", place_id="p1")) == ["p1"]
        assert step_place_refs(MealStep(step_id="b")) == []
        assert step_place_refs(
            TransferStep(step_id="c", from_place_id="p1", to_place_id="p2")
        ) == ["p1", "p2"]


class TestPlanModel:
    """Test the committed plan owner."""

    def test_rejects_inconsistent_plan(self):
        """Test an invalid plan cannot be committed."""
        plan = make_plan()
        del plan.places["p1"]

        with pytest.raises(IntegrityViolation) as exc_info:
            PlanModel(plan)

        assert exc_info.value.problems

    def test_sorts_days(self):
        """Test days are kept in date order."""
        plan = make_two_day_plan()
        plan.days.reverse()

        model = PlanModel(plan)

        assert [d.date for d in model.snapshot().days] == [MAY_1, MAY_2]

    def test_snapshot_is_a_copy(self):
        """Test readers cannot change the committed plan."""
        model = PlanModel(make_plan())

        snapshot = model.snapshot()
        snapshot.days[0].steps.clear()

        assert len(model.snapshot().days[0].steps) == 2

    def test_removing_referenced_place_rejected(self):
        """Test removing p2 while s2 visits it leaves the plan untouched."""
        model = PlanModel(make_plan())
        before = model.snapshot().model_dump()

        with pytest.raises(IntegrityViolation):
            model.apply([RemovePlace(place_id="p2")])

        assert model.snapshot().model_dump() == before
        assert model.version == 1

    def test_failed_patch_is_atomic(self):
        """Test earlier operations are undone when a later one fails."""
        model = PlanModel(make_plan())
        before = model.snapshot().model_dump()

        with pytest.raises(IntegrityViolation):
            model.apply([
                AddPlace(place=make_place("p3")),
                InsertStep(day=MAY_1, step=VisitStep(step_id="s3", place_id="p3")),
                RemoveStep(step_id="missing"),
            ])

        assert model.snapshot().model_dump() == before

    def test_successful_patch_bumps_version(self):
        """Test a committed patch increments the version once."""
        model = PlanModel(make_plan())

        snapshot = model.apply([
            RemoveStep(step_id="s2"),
            RemovePlace(place_id="p2"),
        ])

        assert snapshot.version == 2
        assert model.version == 2
        assert "p2" not in snapshot.places
        assert snapshot.step_ids() == ["s1"]


class TestOperations:
    """Test individual patch operations."""

    def test_insert_after_anchor(self):
        """Test inserting between two steps."""
        model = PlanModel(make_plan())

        snapshot = model.apply([
            InsertStep(day=MAY_1, step=MealStep(step_id="m1"), after_step_id="s1"),
        ])

        assert step_order(snapshot, MAY_1) == ["s1", "m1", "s2"]

    def test_insert_before_anchor(self):
        """Test inserting at the start of a day."""
        model = PlanModel(make_plan())

        snapshot = model.apply([
            InsertStep(day=MAY_1, step=MealStep(step_id="m1"), before_step_id="s1"),
        ])

        assert step_order(snapshot, MAY_1) == ["m1", "s1", "s2"]

    def test_insert_without_anchor_appends(self):
        """Test a step with no anchor goes to the end of the day."""
        model = PlanModel(make_plan())

        snapshot = model.apply([InsertStep(day=MAY_1, step=MealStep(step_id="m1"))])

        assert step_order(snapshot, MAY_1) == ["s1", "s2", "m1"]

    def test_insert_duplicate_step_id(self):
        """Test inserting a step whose id is taken."""
        model = PlanModel(make_plan())

        with pytest.raises(IntegrityViolation):
            model.apply([InsertStep(day=MAY_1, step=VisitStep(step_id="s1", place_id="p1"))])

    def test_insert_unknown_day(self):
        """Test inserting into a day that does not exist."""
        model = PlanModel(make_plan())

        with pytest.raises(IntegrityViolation):
            model.apply([InsertStep(day=MAY_2, step=MealStep(step_id="m1"))])

    def test_move_within_day(self):
        """Test reordering steps of one day."""
        model = PlanModel(make_plan())

        snapshot = model.apply([MoveStep(step_id="s2", before_step_id="s1")])

        assert step_order(snapshot, MAY_1) == ["s2", "s1"]

    def test_move_to_other_day(self):
        """Test moving a step to another day."""
        model = PlanModel(make_two_day_plan())

        snapshot = model.apply([MoveStep(step_id="s2", to_day=MAY_2, after_step_id="s3")])

        assert step_order(snapshot, MAY_1) == ["s1"]
        assert step_order(snapshot, MAY_2) == ["s3", "s2"]

    def test_move_anchored_on_itself(self):
        """Test a step cannot be placed relative to itself."""
        model = PlanModel(make_plan())

        with pytest.raises(IntegrityViolation):
            model.apply([MoveStep(step_id="s1", after_step_id="s1")])

    def test_add_existing_place(self):
        """Test adding a place id that is already registered."""
        model = PlanModel(make_plan())

        with pytest.raises(IntegrityViolation):
            model.apply([AddPlace(place=make_place("p1"))])

    def test_update_place(self):
        """Test changing place fields."""
        model = PlanModel(make_plan())

        snapshot = model.apply([UpdatePlace(place_id="p1", changes={"name": "Wawel Castle"})])

        assert snapshot.places["p1"].name == "Wawel Castle"

    def test_update_place_invalid_value(self):
        """Test an out-of-range latitude is rejected."""
        model = PlanModel(make_plan())

        with pytest.raises(IntegrityViolation):
            model.apply([UpdatePlace(place_id="p1", changes={"lat": 123.0})])

        assert model.snapshot().places["p1"].lat == 50.06

    def test_update_place_id_rejected(self):
        """Test a place cannot be renamed to another id."""
        model = PlanModel(make_plan())

        with pytest.raises(IntegrityViolation):
            model.apply([UpdatePlace(place_id="p1", changes={"place_id": "p9"})])

    def test_change_day_date_reorders(self):
        """Test moving the first day after the second."""
        model = PlanModel(make_two_day_plan())

        snapshot = model.apply([ChangeDayDate(day=MAY_1, new_date=date(2026, 5, 5))])

        assert [d.date for d in snapshot.days] == [MAY_2, date(2026, 5, 5)]

    def test_change_day_date_collision(self):
        """Test two days cannot share a date."""
        model = PlanModel(make_two_day_plan())

        with pytest.raises(IntegrityViolation):
            model.apply([ChangeDayDate(day=MAY_1, new_date=MAY_2)])


class TestPatch:
    """Test patch parsing and display."""

    def test_parse_operations(self):
        """Test operations are parsed by their op tag."""
        patch = Patch.model_validate({
            "base_version": 1,
            "title": "Add dinner",
            "operations": [
                {"op": "add_place", "place": {"place_id": "p3", "name": "Bistro", "lat": 50.0, "lon": 19.9}},
                {"op": "insert_step", "day": "2026-05-01",
                 "step": {"step_id": "m1", "kind": "meal", "place_id": "p3"}},
            ],
        })

        assert isinstance(patch.operations[0], AddPlace)
        assert isinstance(patch.operations[1], InsertStep)
        assert isinstance(patch.operations[1].step, MealStep)
        assert patch.to_display_dict()["changes"] == ["Add place Bistro", "Add meal step on 2026-05-01"]
