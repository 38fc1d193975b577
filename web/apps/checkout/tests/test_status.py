"""Unit tests for the order status lifecycle and timeline rendering."""

from datetime import datetime, timezone

import pytest

from apps.checkout.status import (
    DISPLAY_SEQUENCE,
    ORDER_STATUS_TRANSITIONS,
    InvalidStatusTransition,
    OrderStatus,
    StatusHistoryEntry,
    apply_transition,
    build_timeline,
    can_request_cancellation,
    get_status_config,
    is_active_status,
    is_error_status,
    is_terminal,
    is_valid_transition,
    should_show_as_complete,
)

S = OrderStatus


def entry(status, ts="2026-01-01T00:00:00+00:00", note=None):
    return StatusHistoryEntry(status=status, timestamp=ts, note=note)


@pytest.mark.parametrize(
    "current,to",
    [
        (S.PENDING, S.PAID),
        (S.PENDING, S.CANCELLED),
        (S.PAID, S.PROCESSING),
        (S.PAID, S.CANCELLED),
        (S.PROCESSING, S.SHIPPED),
        (S.PROCESSING, S.CANCELLED),
        (S.SHIPPED, S.DELIVERED),
        (S.SHIPPED, S.REFUNDED),
        (S.DELIVERED, S.REFUNDED),
    ],
)
def test_legal_transitions(current, to):
    assert is_valid_transition(current, to)


@pytest.mark.parametrize(
    "current,to",
    [
        (S.PENDING, S.SHIPPED),
        (S.PAID, S.DELIVERED),
        (S.SHIPPED, S.CANCELLED),
        (S.DELIVERED, S.CANCELLED),
        (S.PROCESSING, S.PAID),
        (S.CANCELLED, S.PAID),
        (S.REFUNDED, S.DELIVERED),
    ],
)
def test_illegal_transitions(current, to):
    assert not is_valid_transition(current, to)


def test_no_status_transitions_to_itself():
    for status in OrderStatus:
        assert not is_valid_transition(status, status)


def test_table_covers_every_status():
    assert set(ORDER_STATUS_TRANSITIONS) == set(OrderStatus)


def test_terminal_statuses():
    assert {s for s in OrderStatus if is_terminal(s)} == {S.CANCELLED, S.REFUNDED}


def test_error_and_active_predicates():
    assert is_error_status(S.CANCELLED) and is_error_status(S.REFUNDED)
    assert not is_error_status(S.DELIVERED)
    assert [s for s in OrderStatus if is_active_status(s)] == [S.PENDING, S.PAID, S.PROCESSING, S.SHIPPED]


def test_cancellation_allowed_until_shipped():
    assert can_request_cancellation(S.PAID)
    assert can_request_cancellation(S.PROCESSING)
    assert not can_request_cancellation(S.SHIPPED)
    assert not can_request_cancellation(S.CANCELLED)


def test_status_config_for_every_status():
    for status in OrderStatus:
        assert get_status_config(status).label
    assert get_status_config(S.PAID).label == "Pago Confirmado"
    assert get_status_config(S.CANCELLED).color == "red"


def test_earlier_status_shows_complete():
    assert should_show_as_complete(S.PENDING, S.SHIPPED)
    assert should_show_as_complete(S.PAID, S.SHIPPED)
    assert should_show_as_complete(S.PENDING, S.PAID)


def test_current_and_later_statuses_not_complete():
    assert not should_show_as_complete(S.SHIPPED, S.SHIPPED)
    assert not should_show_as_complete(S.DELIVERED, S.PROCESSING)


def test_delivered_is_complete_when_current():
    assert should_show_as_complete(S.DELIVERED, S.DELIVERED)


def test_error_status_complete_only_when_current():
    assert should_show_as_complete(S.CANCELLED, S.CANCELLED)
    assert not should_show_as_complete(S.CANCELLED, S.PAID)
    assert not should_show_as_complete(S.REFUNDED, S.CANCELLED)


def test_history_wins():
    history = [entry(S.PAID), entry(S.PROCESSING), entry(S.CANCELLED)]
    assert should_show_as_complete(S.PROCESSING, S.CANCELLED, history)
    assert not should_show_as_complete(S.SHIPPED, S.CANCELLED, history)


def test_without_history_cancelled_order_shows_no_progress():
    for status in DISPLAY_SEQUENCE:
        assert not should_show_as_complete(status, S.CANCELLED)


def test_apply_transition_appends_entry():
    history = [entry(S.PAID)]
    at = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    out = apply_transition(S.PAID, S.PROCESSING, history, note="picking", at=at)
    assert len(history) == 1
    assert [h.status for h in out] == [S.PAID, S.PROCESSING]
    assert out[-1].timestamp == at.isoformat()
    assert out[-1].note == "picking"


def test_apply_transition_rejects_illegal_change():
    with pytest.raises(InvalidStatusTransition) as e:
        apply_transition(S.DELIVERED, S.CANCELLED)
    assert str(e.value) == "INVALID_STATUS_TRANSITION"
    assert e.value.current == S.DELIVERED
    assert e.value.to == S.CANCELLED
    assert isinstance(e.value, ValueError)


def test_build_timeline_for_shipped_order():
    history = [entry(S.PAID, "t1"), entry(S.PROCESSING, "t2"), entry(S.SHIPPED, "t3")]
    steps = build_timeline(S.SHIPPED, history)
    assert [s.status for s in steps] == list(DISPLAY_SEQUENCE)
    done = {s.status: s.completed for s in steps}
    assert done == {
        S.PENDING: True,
        S.PAID: True,
        S.PROCESSING: True,
        S.SHIPPED: True,
        S.DELIVERED: False,
    }
    current = [s.status for s in steps if s.current]
    assert current == [S.SHIPPED]
    assert steps[1].timestamp == "t1"
    assert steps[0].timestamp is None
    assert steps[1].label == "Pago Confirmado"
