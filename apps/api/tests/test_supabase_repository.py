"""
Tests for the shared repository plumbing used by every feature service.
"""
import httpx
import pytest

from core.exceptions import AuthError, DataAccessError, RecordNotFoundError
from fixtures.fake_supabase import FakeSupabase, postgrest_error
from models import DrillInput
from services.drill_service import DrillService
from services.supabase_repository import escape_like, ilike_any, quote_filter_value, to_row


class TestToRow:
    def test_model_dump_is_json_ready(self):
        row = to_row(DrillInput(title="Edges", category="skating"))
        assert row["category"] == "skating"
        assert row["equipment"] == []

    def test_partial_keeps_only_set_fields(self):
        assert to_row(DrillInput(title="Edges"), partial=True) == {"title": "Edges"}

    def test_dict_passthrough(self):
        assert to_row({"title": "x"}) == {"title": "x"}


class TestFilterHelpers:
    def test_escape_like_wildcards(self):
        assert escape_like("100%") == "100\\%"
        assert escape_like("a_b") == "a\\_b"
        assert escape_like("back\\slash") == "back\\\\slash"
        assert escape_like("a,b (c)") == "a,b (c)"

    def test_quote_filter_value(self):
        assert quote_filter_value("a,b (c)") == '"a,b (c)"'
        assert quote_filter_value('say "hi"') == '"say \\"hi\\""'

    def test_ilike_any(self):
        assert ilike_any(["title", "description"], "a_b, (x)") == (
            'title.ilike."%a\\\\_b, (x)%",description.ilike."%a\\\\_b, (x)%"'
        )

    @pytest.mark.asyncio
    async def test_unquoted_free_text_breaks_or_filter(self):
        db = FakeSupabase()
        db.seed("drills", {"id": "d1", "title": "a, b"})
        service = DrillService(db)
        with pytest.raises(DataAccessError):
            await service._rows(service._table().select("*").or_("title.ilike.%a, b%"))
        rows = await service._rows(service._table().select("*").or_(ilike_any(["title"], "a, b")))
        assert [r["id"] for r in rows] == ["d1"]


class TestRepository:
    @pytest.mark.asyncio
    async def test_user_id_comes_from_accessor(self):
        db = FakeSupabase()
        service = DrillService(db, current_user_id=lambda: "coach-9")
        drill = await service.create({"title": "Crossovers"})
        assert drill.created_by == "coach-9"

    @pytest.mark.asyncio
    async def test_explicit_user_id_wins(self):
        service = DrillService(FakeSupabase(), current_user_id=lambda: "coach-9")
        drill = await service.create({"title": "Crossovers"}, coach_id="coach-1")
        assert drill.created_by == "coach-1"

    @pytest.mark.asyncio
    async def test_no_user_raises_not_authenticated(self):
        service = DrillService(FakeSupabase(), current_user_id=lambda: None)
        with pytest.raises(AuthError) as exc_info:
            await service.create({"title": "Crossovers"})
        assert exc_info.value.code == "not_authenticated"

    @pytest.mark.asyncio
    async def test_missing_record(self):
        with pytest.raises(RecordNotFoundError) as exc_info:
            await DrillService(FakeSupabase()).get("nope")
        assert exc_info.value.resource == "Drill"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error", [postgrest_error("permission denied", "42501"), httpx.ConnectError("refused")]
    )
    async def test_query_failures_become_data_access_errors(self, error):
        db = FakeSupabase()
        db.fail("drills", error)
        with pytest.raises(DataAccessError, match="Drill query failed"):
            await DrillService(db).list_drills()

    @pytest.mark.asyncio
    async def test_update_missing_record(self):
        with pytest.raises(RecordNotFoundError):
            await DrillService(FakeSupabase()).update("nope", {"title": "x"})

    @pytest.mark.asyncio
    async def test_delete(self):
        db = FakeSupabase()
        db.seed("drills", {"id": "d1", "title": "Edges"})
        await DrillService(db).delete("d1")
        assert db.rows("drills") == []
