"""Tests for plan generation and edit proposals against LLM responses."""
import pytest
from datetime import date
from unittest.mock import AsyncMock, MagicMock

from conductor.config import settings
from conductor.errors import EditError, GenerationError
from conductor.models.draft import DraftStore
from conductor.models.patch import AddPlace, InsertStep
from conductor.models.plan import PlanModel, RelaxStep
from conductor.services.edit_proposer import EditProposer
from conductor.services.generator import PlanGenerator
from conductor.services.llm_client import LLMClient, parse_json_object

from conftest import fill_draft, make_plan


def frozen_draft():
    store = DraftStore()
    fill_draft(store)
    return store.freeze()


def fake_llm(response=None, error=None):
    llm = MagicMock()
    llm.chat_json = AsyncMock(return_value=response, side_effect=error)
    return llm


@pytest.fixture
def mock_client(monkeypatch):
    monkeypatch.setattr(settings, "llm_provider", "mock")
    return LLMClient()


class TestPlanGenerator:
    """Test turning LLM output into trip plans."""

    @pytest.mark.asyncio
    async def test_mock_plan_is_consistent(self, mock_client):
        """Test the offline mock produces a plan that passes integrity checks."""
        generator = PlanGenerator(llm=mock_client)

        plan = await generator.generate(frozen_draft())
        model = PlanModel(plan)

        assert plan.destination == "Krakow"
        assert [d.date for d in plan.days] == [date(2026, 5, 1), date(2026, 5, 2), date(2026, 5, 3)]
        assert model.version == 1
        assert len(plan.step_ids()) == 12

    @pytest.mark.asyncio
    async def test_prompt_contains_draft(self):
        """Test the frozen draft is sent as JSON."""
        llm = fake_llm({"days": [{"date": "2026-05-01", "steps": []}]})
        generator = PlanGenerator(llm=llm)

        await generator.generate(frozen_draft())

        messages = llm.chat_json.call_args.args[0]
        assert "TRIP REQUEST (JSON):" in messages[1]["content"]
        assert "Krakow" in messages[1]["content"]

    @pytest.mark.asyncio
    async def test_unknown_kind_and_missing_dates(self):
        """Test lenient parsing of unknown step kinds and missing dates."""
        llm = fake_llm({
            "days": [
                {"steps": [{"step_id": "a", "kind": "museum"}]},
                {"steps": []},
            ],
            "places": [],
        })
        generator = PlanGenerator(llm=llm)

        plan = await generator.generate(frozen_draft())

        assert isinstance(plan.days[0].steps[0], RelaxStep)
        assert plan.days[1].date == date(2026, 5, 2)

    @pytest.mark.asyncio
    async def test_empty_response(self):
        """Test a response without days."""
        generator = PlanGenerator(llm=fake_llm({}))

        with pytest.raises(GenerationError) as exc_info:
            await generator.generate(frozen_draft())

        assert exc_info.value.code == "invalid_response"

    @pytest.mark.asyncio
    async def test_malformed_response(self):
        """Test a place with impossible coordinates."""
        llm = fake_llm({
            "days": [{"date": "2026-05-01", "steps": []}],
            "places": [{"place_id": "x", "name": "X", "lat": 500, "lon": 0}],
        })
        generator = PlanGenerator(llm=llm)

        with pytest.raises(GenerationError) as exc_info:
            await generator.generate(frozen_draft())

        assert exc_info.value.code == "invalid_response"

    @pytest.mark.asyncio
    async def test_provider_error(self):
        """Test provider exceptions become generation errors."""
        generator = PlanGenerator(llm=fake_llm(error=ConnectionError("refused")))

        with pytest.raises(GenerationError) as exc_info:
            await generator.generate(frozen_draft())

        assert exc_info.value.code == "llm_error"


class TestEditProposer:
    """Test turning LLM output into patches."""

    @pytest.mark.asyncio
    async def test_mock_adds_dinner(self, mock_client):
        """Test the offline mock proposes an applicable dinner patch."""
        proposer = EditProposer(llm=mock_client)
        model = PlanModel(make_plan())

        patch = await proposer.propose_edit(model.snapshot(), "Add a dinner on the first evening")

        assert patch.base_version == 1
        assert isinstance(patch.operations[0], AddPlace)
        assert isinstance(patch.operations[1], InsertStep)

        snapshot = model.apply(patch.operations)
        assert snapshot.step_ids()[-1] == "mock_dinner_meal"
        assert "MOCK_DINNER" in snapshot.places

    @pytest.mark.asyncio
    async def test_mock_removes_visit(self, mock_client):
        """Test the offline mock removes the last visit of day one."""
        proposer = EditProposer(llm=mock_client)
        model = PlanModel(make_plan())

        patch = await proposer.propose_edit(model.snapshot(), "Please skip the second museum")
        snapshot = model.apply(patch.operations)

        assert snapshot.step_ids() == ["s1"]

    @pytest.mark.asyncio
    async def test_missing_title(self):
        """Test a response that is not a patch."""
        proposer = EditProposer(llm=fake_llm({"operations": []}))

        with pytest.raises(EditError) as exc_info:
            await proposer.propose_edit(make_plan(), "Add dinner")

        assert exc_info.value.code == "invalid_response"

    @pytest.mark.asyncio
    async def test_unknown_operation(self):
        """Test an unsupported operation is rejected."""
        proposer = EditProposer(llm=fake_llm({
            "title": "Rewrite",
            "operations": [{"op": "replace_plan"}],
        }))

        with pytest.raises(EditError) as exc_info:
            await proposer.propose_edit(make_plan(), "Start over")

        assert exc_info.value.code == "invalid_response"


class TestParseJsonResponse:
    """Test JSON extraction from model output."""

    def test_plain_json(self):
        """Test a bare JSON object."""
        assert parse_json_object('{"a": 1}') == {"a": 1}

    def test_code_block(self):
        """Test JSON inside a markdown code block."""
        text = 'Here you go:\n```json\n{"title": "Add dinner"}\n```'

        assert parse_json_object(text) == {"title": "Add dinner"}

    def test_no_json(self):
        """Test text without JSON."""
        assert parse_json_object("Sorry, I cannot help.") == {}

    def test_prose_around_object(self):
        """Test an object surrounded by text with stray braces."""
        text = 'Plan {draft} follows: {"title": "Add dinner", "operations": []} Enjoy!'

        assert parse_json_object(text) == {"title": "Add dinner", "operations": []}

    def test_object_inside_array(self):
        """Test the first object is found inside other JSON."""
        assert parse_json_object('[{"a": 1}]') == {"a": 1}
