"""Tests for the order lifecycle engine (service layer, no HTTP)."""
import re

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from station_ops.config import settings
from station_ops.schemas.order import OrderStatus, PaymentStatus
from station_ops.services import activity_ledger, order_service

PO_NUMBER = re.compile(r"^PO-\d{6}$")


def _add_order(state, **fields):
    """Helper — creates an order with a typical fuel delivery payload."""
    payload = {"supplier": "Oando Terminal", "product": "AGO", "quantity": 15000, "grand_total": 18750000.0}
    payload.update(fields)
    return order_service.add_purchase_order(state, payload)


class TestAddPurchaseOrder:
    """Creation seeds exactly one history entry."""

    def test_single_history_entry_matches_status(self, state):
        order = _add_order(state)
        fetched = order_service.get_purchase_order_by_id(state, order.id)
        assert fetched is not None
        assert fetched.status == OrderStatus.pending
        assert len(fetched.status_history) == 1
        assert fetched.status_history[0].status == fetched.status
        assert fetched.status_history[0].note == "Order created"
        assert fetched.created_at == fetched.updated_at

    def test_caller_sets_initial_status(self, state):
        order = _add_order(state, status="draft")
        assert order.status == OrderStatus.draft
        assert order.status_history[-1].status == OrderStatus.draft

    def test_po_number_format(self, state):
        for _ in range(20):
            assert PO_NUMBER.match(_add_order(state).po_number)

    def test_opaque_fields_ride_along(self, state):
        items = [{"product": "PMS", "quantity": 33000, "unit_price": 650}]
        order = _add_order(state, items=items)
        dumped = order.model_dump()
        assert dumped["supplier"] == "Oando Terminal"
        assert dumped["items"] == items
        assert dumped["grand_total"] == 18750000.0

    def test_engine_owned_fields_not_taken_from_caller(self, state):
        order = _add_order(state, po_number="FAKE-1", status_history=[], created_at="1999-01-01T00:00:00")
        assert order.po_number != "FAKE-1"
        assert len(order.status_history) == 1
        assert order.created_at.year != 1999

    def test_caller_supplied_id_kept(self, state):
        order = _add_order(state, id="po-fixed")
        assert order_service.get_purchase_order_by_id(state, "po-fixed") is order

    def test_appends_in_insertion_order(self, state):
        first = _add_order(state)
        second = _add_order(state)
        assert [po.id for po in state.purchase_orders] == [first.id, second.id]

    def test_creation_writes_order_log(self, state):
        order = _add_order(state)
        logs = activity_ledger.get_logs_by_order_id(state, order.id)
        assert len(logs) == 1
        assert order.po_number in logs[0].action
        assert logs[0].actor == settings.DEFAULT_ACTOR


class TestUpdateOrderStatus:
    """History is append-only and always ends at the current status."""

    def test_history_grows_by_one_per_update(self, state):
        order = _add_order(state)
        sequence = ["approved", "active", "delivered", "fulfilled", "pending", "rejected"]
        for new_status in sequence:
            before = [entry.model_dump() for entry in order.status_history]
            assert order_service.update_order_status(state, order.id, new_status) is True

            fetched = order_service.get_purchase_order_by_id(state, order.id)
            assert len(fetched.status_history) == len(before) + 1
            assert [entry.model_dump() for entry in fetched.status_history[:-1]] == before
            assert fetched.status_history[-1].status == fetched.status == OrderStatus(new_status)

    def test_unknown_order_returns_false(self, state):
        _add_order(state)
        before = state.snapshot()
        assert order_service.update_order_status(state, "missing", "approved") is False
        assert state.snapshot() == before

    @pytest.mark.parametrize("payment", ["unpaid", "partial", "paid"])
    def test_active_marks_paid(self, state, payment):
        order = _add_order(state, payment_status=payment)
        order_service.update_order_status(state, order.id, OrderStatus.active)
        assert order_service.get_purchase_order_by_id(state, order.id).payment_status == PaymentStatus.paid

    def test_other_statuses_leave_payment_alone(self, state):
        order = _add_order(state, payment_status="partial")
        order_service.update_order_status(state, order.id, OrderStatus.approved)
        assert order.payment_status == PaymentStatus.partial

    def test_default_note_describes_transition(self, state):
        order = _add_order(state)
        order_service.update_order_status(state, order.id, "approved")
        assert order.status_history[-1].note == "Status changed from pending to approved"

    def test_reject_with_note(self, state):
        order = _add_order(state)
        order_service.update_order_status(
            state, order.id, "rejected", note="insufficient funds", rejection_reason="insufficient funds",
        )
        assert order.status == OrderStatus.rejected
        assert order.status_history[-1].note == "insufficient funds"
        assert order.rejection_reason == "insufficient funds"

    def test_approved_by_recorded(self, state):
        order = _add_order(state)
        order_service.update_order_status(state, order.id, "approved", actor="Manager", approved_by="Manager")
        assert order.approved_by == "Manager"
        assert order.status_history[-1].actor == "Manager"

    def test_updated_at_bumped(self, state):
        order = _add_order(state)
        created = order.updated_at
        order_service.update_order_status(state, order.id, "approved")
        assert order.updated_at >= created
        assert order.updated_at == order.status_history[-1].timestamp

    def test_status_change_writes_order_log(self, state):
        order = _add_order(state)
        order_service.update_order_status(state, order.id, "active")
        last = activity_ledger.get_logs_by_order_id(state, order.id)[-1]
        assert "Active (Paid)" in last.action
        assert last.metadata == {"from": "pending", "to": "active"}

    def test_permissive_allows_any_transition(self, state):
        order = _add_order(state, status="fulfilled")
        assert order_service.update_order_status(state, order.id, "draft") is True
        assert order.status == OrderStatus.draft

    def test_strict_refuses_illegal_transition(self, state):
        order = _add_order(state)
        with pytest.raises(HTTPException) as exc:
            order_service.update_order_status(state, order.id, "delivered", policy="strict")
        assert exc.value.status_code == 409
        assert order.status == OrderStatus.pending
        assert len(order.status_history) == 1

    def test_strict_allows_table_transitions(self, state):
        order = _add_order(state)
        for new_status in ["approved", "active", "delivered", "fulfilled", "completed"]:
            assert order_service.update_order_status(state, order.id, new_status, policy="strict") is True
        assert order.status == OrderStatus.completed

    def test_strict_policy_from_settings(self, state, monkeypatch):
        monkeypatch.setattr(settings, "ORDER_TRANSITION_POLICY", "strict")
        order = _add_order(state, status="completed")
        with pytest.raises(HTTPException):
            order_service.update_order_status(state, order.id, "pending")


class TestUpdatePurchaseOrder:
    """Field updates never touch status or its history."""

    def test_merges_fields(self, state):
        order = _add_order(state)
        assert order_service.update_purchase_order(state, order.id, {"quantity": 20000, "driver": "Musa"}) is True
        fetched = order_service.get_purchase_order_by_id(state, order.id).model_dump()
        assert fetched["quantity"] == 20000
        assert fetched["driver"] == "Musa"
        assert fetched["supplier"] == "Oando Terminal"

    def test_status_field_ignored(self, state):
        order = _add_order(state)
        order_service.update_purchase_order(state, order.id, {"status": "delivered", "note": "rush"})
        fetched = order_service.get_purchase_order_by_id(state, order.id)
        assert fetched.status == OrderStatus.pending
        assert len(fetched.status_history) == 1
        assert fetched.status_history[-1].status == fetched.status

    def test_engine_owned_fields_ignored(self, state):
        order = _add_order(state)
        order_service.update_purchase_order(state, order.id, {"po_number": "X-1", "id": "other"})
        fetched = order_service.get_purchase_order_by_id(state, order.id)
        assert fetched.po_number == order.po_number

    def test_unknown_order_returns_false(self, state):
        assert order_service.update_purchase_order(state, "missing", {"quantity": 1}) is False

    def test_invalid_payment_status_rejected(self, state):
        order = _add_order(state)
        with pytest.raises(ValidationError):
            order_service.update_purchase_order(state, order.id, {"payment_status": "bogus"})
        assert order_service.get_purchase_order_by_id(state, order.id).payment_status == PaymentStatus.unpaid

    def test_writes_order_log(self, state):
        order = _add_order(state)
        order_service.update_purchase_order(state, order.id, {"quantity": 1})
        assert activity_ledger.get_logs_by_order_id(state, order.id)[-1].metadata == {"fields": ["quantity"]}


class TestDeleteAndQuery:
    def test_delete_removes_order(self, state):
        order = _add_order(state)
        _add_order(state)
        total = order_service.get_all_purchase_orders(state).total
        assert order_service.delete_purchase_order(state, order.id) is True
        assert order_service.get_purchase_order_by_id(state, order.id) is None
        assert order_service.get_all_purchase_orders(state).total == total - 1

    def test_delete_unknown_returns_false(self, state):
        assert order_service.delete_purchase_order(state, "missing") is False

    def test_reject_then_delete(self, state):
        order = _add_order(state)
        order_service.update_order_status(state, order.id, "rejected", note="insufficient funds")
        assert order.status_history[-1].note == "insufficient funds"
        order_service.delete_purchase_order(state, order.id)
        assert order_service.get_all_purchase_orders(state).total == 0

    def test_paginated_listing(self, state):
        for _ in range(25):
            _add_order(state)
        page = order_service.get_all_purchase_orders(state, page=2, limit=10)
        assert len(page.data) == 10
        assert page.total == 25
        assert page.total_pages == 3
        assert page.data[0].id == state.purchase_orders[10].id

    def test_orders_by_status(self, state):
        a = _add_order(state)
        _add_order(state)
        order_service.update_order_status(state, a.id, "approved")
        assert [po.id for po in order_service.get_orders_by_status(state, "approved")] == [a.id]
        assert len(order_service.get_orders_by_status(state, OrderStatus.pending)) == 1

    @pytest.mark.parametrize("value,expected", [
        ("active", "Active (Paid)"),
        (OrderStatus.pending, "Pending"),
        ("mystery", "mystery"),
    ])
    def test_status_description(self, value, expected):
        assert order_service.get_status_description(value) == expected
