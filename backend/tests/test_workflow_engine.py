"""
Unit tests for the Shipment Workflow Engine.
Tests auto-advance and manual status changes in services/workflow_engine.py
"""
import itertools
import pytest
from unittest.mock import AsyncMock, patch

from services.shipment_models import TimelineEvent
from services.shipment_store import StoreError
from services.status_order import STATUS_ORDER, rank
from services.workflow_engine import (
    AdvanceResult,
    InvalidStatusError,
    ShipmentNotFoundError,
    ShipmentWorkflowEngine,
    record_timeline_event,
)
from services.workflow_triggers import DOCUMENT_STATUS_MAP, TERMINAL_EXPENSE_CATEGORIES


@pytest.fixture
def engine(store):
    return ShipmentWorkflowEngine(store)


NON_ADVANCING_PAIRS = [
    (status, doc_type)
    for status, doc_type in itertools.product(STATUS_ORDER, DOCUMENT_STATUS_MAP)
    if rank(DOCUMENT_STATUS_MAP[doc_type]) <= rank(status)
]


class TestAdvanceOnDocument:
    """Document-triggered auto-advance."""

    @pytest.mark.asyncio
    async def test_ddi_advances_arrived_shipment(self, store, engine):
        store.add_shipment("shp-1", status="ARRIVED")

        result = await engine.advance_on_document("shp-1", "DDI", actor_id="user-1")

        assert result.advanced is True
        assert result.old_status == "ARRIVED"
        assert result.new_status == "DDI_OBTAINED"
        assert store.shipments["shp-1"]["status"] == "DDI_OBTAINED"
        assert len(store.timeline) == 1
        event = store.timeline[0]
        assert event["shipment_id"] == "shp-1"
        assert event["action"] == "Status advanced automatically -> DDI_OBTAINED"
        assert "ARRIVED" in event["description"]
        assert event["actor_id"] == "user-1"
        assert event["actor_name"] == "Mariama Camara"

    @pytest.mark.asyncio
    async def test_document_may_skip_intermediate_stages(self, store, engine):
        """A BAE on a DDI_OBTAINED shipment jumps straight to BAE_ISSUED."""
        store.add_shipment("shp-1", status="DDI_OBTAINED")

        result = await engine.advance_on_document("shp-1", "BAE")

        assert result.advanced is True
        assert store.shipments["shp-1"]["status"] == "BAE_ISSUED"
        assert len(store.status_writes) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,doc_type", NON_ADVANCING_PAIRS)
    async def test_never_moves_backward_or_sideways(self, store, engine, status, doc_type):
        store.add_shipment("shp-1", status=status)

        result = await engine.advance_on_document("shp-1", doc_type)

        assert result.advanced is False
        assert store.shipments["shp-1"]["status"] == status
        assert store.status_writes == []
        assert store.timeline == []

    @pytest.mark.asyncio
    async def test_non_triggering_document_is_noop(self, store, engine):
        store.add_shipment("shp-1", status="PENDING")

        result = await engine.advance_on_document("shp-1", "PACKING_LIST")

        assert result.advanced is False
        assert "no status trigger" in result.reason
        assert store.timeline == []

    @pytest.mark.asyncio
    async def test_same_trigger_twice_is_idempotent(self, store, engine):
        store.add_shipment("shp-1", status="CUSTOMS_PAID")

        first = await engine.advance_on_document("shp-1", "BAE")
        second = await engine.advance_on_document("shp-1", "BAE")

        assert first.advanced is True
        assert second.advanced is False
        assert store.shipments["shp-1"]["status"] == "BAE_ISSUED"
        assert len(store.timeline) == 1

    @pytest.mark.asyncio
    async def test_unknown_current_status_is_behind_every_target(self, store, engine):
        store.add_shipment("shp-1", status="LEGACY_STATE")

        result = await engine.advance_on_document("shp-1", "BL")

        assert result.advanced is True
        assert store.shipments["shp-1"]["status"] == "PENDING"

    @pytest.mark.asyncio
    async def test_missing_shipment(self, store, engine):
        result = await engine.advance_on_document("nope", "DDI")

        assert result.advanced is False
        assert result.reason == "Shipment not found"

    @pytest.mark.asyncio
    async def test_lost_race_is_noop(self, store, engine):
        """Another writer changed the status between read and write."""
        store.add_shipment("shp-1", status="ARRIVED")
        store.lose_next_race = True

        result = await engine.advance_on_document("shp-1", "DDI")

        assert result.advanced is False
        assert result.reason == "Status changed concurrently"
        assert store.timeline == []

    @pytest.mark.asyncio
    async def test_lookup_failure_is_reported_not_raised(self, store, engine):
        store.add_shipment("shp-1", status="ARRIVED")
        store.fail_lookup = True

        result = await engine.advance_on_document("shp-1", "DDI")

        assert result.advanced is False
        assert "connection refused" in result.error
        assert store.shipments["shp-1"]["status"] == "ARRIVED"

    @pytest.mark.asyncio
    async def test_timeline_failure_after_write_is_reported(self, store, engine):
        """Status is written but the audit entry is lost: reported, not raised."""
        store.add_shipment("shp-1", status="ARRIVED")
        store.fail_timeline = True

        result = await engine.advance_on_document("shp-1", "DDI")

        assert result.advanced is False
        assert result.new_status == "DDI_OBTAINED"
        assert "timeline write rejected" in result.error
        assert store.shipments["shp-1"]["status"] == "DDI_OBTAINED"

    @pytest.mark.asyncio
    async def test_actor_without_user_record(self, store, engine):
        store.add_shipment("shp-1", status="ARRIVED")

        await engine.advance_on_document("shp-1", "DDI", actor_id="ghost")

        assert store.timeline[0]["actor_id"] == "ghost"
        assert store.timeline[0]["actor_name"] is None

    @pytest.mark.asyncio
    async def test_forward_check_comes_from_trigger_table(self, store, engine):
        """The engine defers to document_advances for the forward-only decision."""
        store.add_shipment("shp-1", status="ARRIVED")

        with patch("services.workflow_engine.document_advances", return_value=None) as advances:
            result = await engine.advance_on_document("shp-1", "DDI")

        advances.assert_called_once_with("DDI", "ARRIVED")
        assert result.advanced is False
        assert store.status_writes == []


class TestAdvanceOnExpensePaid:
    """Expense-triggered auto-advance."""

    @pytest.mark.asyncio
    async def test_acconage_from_bae_issued(self, store, engine):
        store.add_shipment("shp-1", status="BAE_ISSUED")

        result = await engine.advance_on_expense_paid("shp-1", "ACCONAGE", actor_id="user-1")

        assert result.advanced is True
        assert result.new_status == "TERMINAL_PAID"
        assert store.shipments["shp-1"]["status"] == "TERMINAL_PAID"
        assert len(store.timeline) == 1
        assert "ACCONAGE" in store.timeline[0]["description"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [s for s in STATUS_ORDER if s != "BAE_ISSUED"])
    async def test_terminal_fee_outside_bae_issued_is_noop(self, store, engine, status):
        store.add_shipment("shp-1", status=status)

        result = await engine.advance_on_expense_paid("shp-1", "MANUTENTION")

        assert result.advanced is False
        assert store.shipments["shp-1"]["status"] == status
        assert store.timeline == []

    @pytest.mark.asyncio
    async def test_non_terminal_category_skips_lookup(self, store, engine):
        store.get_shipment = AsyncMock()

        result = await engine.advance_on_expense_paid("shp-1", "DD")

        assert result.advanced is False
        store.get_shipment.assert_not_called()

    @pytest.mark.asyncio
    async def test_second_terminal_fee_does_nothing(self, store, engine):
        store.add_shipment("shp-1", status="BAE_ISSUED")

        results = []
        for category in sorted(TERMINAL_EXPENSE_CATEGORIES):
            results.append(await engine.advance_on_expense_paid("shp-1", category))

        assert sum(1 for r in results if r.advanced) == 1
        assert len(store.timeline) == 1


class TestSetStatusManually:
    """Privileged manual status changes."""

    @pytest.mark.asyncio
    async def test_manual_change_can_move_backward(self, store, engine):
        store.add_shipment("shp-1", status="CUSTOMS_PAID")

        result = await engine.set_status_manually(
            "shp-1", "ARRIVED", actor_id="user-1", comment="Liquidation cancelled", company_id="co-1"
        )

        assert result["old_status"] == "CUSTOMS_PAID"
        assert result["new_status"] == "ARRIVED"
        assert result["timeline_event"]["description"] == "Liquidation cancelled"
        assert store.shipments["shp-1"]["status"] == "ARRIVED"
        assert store.timeline[0]["action"] == "Status -> ARRIVED"

    @pytest.mark.asyncio
    async def test_default_description(self, store, engine):
        store.add_shipment("shp-1", status="PENDING")

        result = await engine.set_status_manually("shp-1", "ARRIVED")

        assert result["timeline_event"]["description"] == "Moved from PENDING to ARRIVED"

    @pytest.mark.asyncio
    async def test_unknown_status_rejected(self, store, engine):
        store.add_shipment("shp-1", status="PENDING")

        with pytest.raises(InvalidStatusError):
            await engine.set_status_manually("shp-1", "TELEPORTED")
        assert store.status_writes == []

    @pytest.mark.asyncio
    async def test_other_company_cannot_see_shipment(self, store, engine):
        store.add_shipment("shp-1", status="PENDING", company_id="co-1")

        with pytest.raises(ShipmentNotFoundError):
            await engine.set_status_manually("shp-1", "ARRIVED", company_id="co-2")

    @pytest.mark.asyncio
    async def test_store_errors_propagate(self, store, engine):
        store.add_shipment("shp-1", status="PENDING")
        store.fail_timeline = True

        with pytest.raises(StoreError):
            await engine.set_status_manually("shp-1", "ARRIVED")


class TestRecordTimelineEvent:
    @pytest.mark.asyncio
    async def test_success(self, store):
        ok = await record_timeline_event(store, TimelineEvent("shp-1", "Document added: bl.pdf"))
        assert ok is True
        assert store.timeline[0]["action"] == "Document added: bl.pdf"

    @pytest.mark.asyncio
    async def test_failure_is_swallowed(self, store):
        store.fail_timeline = True
        ok = await record_timeline_event(store, TimelineEvent("shp-1", "Document added: bl.pdf"))
        assert ok is False


class TestAdvanceResult:
    def test_to_dict_omits_empty_error(self):
        data = AdvanceResult(advanced=True, old_status="ARRIVED", new_status="DDI_OBTAINED").to_dict()
        assert data["advanced"] is True
        assert "error" not in data
        assert "timestamp" in data

    def test_skipped(self):
        result = AdvanceResult.skipped("nothing to do", old_status="PENDING")
        assert result.advanced is False
        assert result.new_status is None
        assert result.to_dict()["reason"] == "nothing to do"
