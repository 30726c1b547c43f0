"""결제 승인 추론 단위 테스트"""
import pytest

from infinitepay_webhook.services.approval import infer_approval, parse_bool_like


@pytest.mark.parametrize(
    "value, expected",
    [
        (True, True),
        ("true", True),
        (" TRUE ", True),
        (1, True),
        ("1", True),
        (False, False),
        ("false", False),
        (0, False),
        ("0", False),
        ("yes", None),
        (2, None),
        (None, None),
        ({}, None),
    ],
)
def test_parse_bool_like(value, expected):
    assert parse_bool_like(value) is expected


def test_explicit_flag_beats_approved_status():
    evt = {"data": {"paid": "false"}}
    assert infer_approval(evt, status="approved") is False


def test_data_flag_beats_top_level_flag():
    evt = {"data": {"approved": True}, "approved": False}
    assert infer_approval(evt) is True


def test_unparseable_flag_falls_through_to_next_rule():
    evt = {"data": {"approved": "maybe"}}
    assert infer_approval(evt, status="pago") is True


def test_approval_timestamp_means_approved():
    evt = {"data": {"paid_at": "2024-05-01T12:00:00Z"}}
    assert infer_approval(evt, status="pending") is True


def test_paid_amount_covering_total_is_approved():
    assert infer_approval({}, amount_cents=799, paid_amount_cents=799) is True
    assert infer_approval({}, amount_cents=799, paid_amount_cents=1000) is True


def test_zero_paid_amount_is_rejected():
    assert infer_approval({}, status="approved", amount_cents=799, paid_amount_cents=0) is False


def test_partial_payment_defers_to_status():
    assert infer_approval({}, amount_cents=799, paid_amount_cents=500) is None
    assert infer_approval({}, status="paid", amount_cents=799, paid_amount_cents=500) is True


@pytest.mark.parametrize("status", ["approved", "paid", "aprovado", "pago", "confirmado"])
def test_approved_statuses(status):
    assert infer_approval({}, status=status) is True


@pytest.mark.parametrize("status", ["rejected", "canceled", "cancelado", "estornado", "refunded"])
def test_rejected_statuses(status):
    assert infer_approval({}, status=status) is False


def test_event_name_used_when_status_is_unknown():
    assert infer_approval({}, status="processing", event_name="payment.approved") is True
    assert infer_approval({}, event_name="payment.failed") is False


def test_no_signal_is_unknown_not_false():
    assert infer_approval({}, status="pending", event_name="payment.created") is None
    assert infer_approval(None) is None
    assert infer_approval(["not", "an", "object"]) is None
