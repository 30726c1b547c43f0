"""웹훅 필드 추출기 단위 테스트"""
import pytest

from infinitepay_webhook.services.field_extractor import (
    extract_amount_cents,
    extract_candidate_days,
    extract_candidate_user_id,
    extract_fields,
    extract_payer_email,
    extract_provider_payment_id,
    extract_reference,
    extract_status,
    fallback_payment_id,
    normalize_amount_cents,
    positive_days,
)

UUID = "123e4567-e89b-12d3-a456-426614174000"


@pytest.mark.parametrize(
    "raw, expected",
    [
        (799, 799),
        (7.99, 799),
        ("7.99", 799),
        (" 3500 ", 3500),
        ({"amount": 7.99}, 799),
        ({"value": "59.99"}, 5999),
        (1500.5, 1501),
        (0, 0),
        ("abc", None),
        (True, None),
        (None, None),
        ("", None),
        ([799], None),
    ],
)
def test_normalize_amount_cents(raw, expected):
    assert normalize_amount_cents(raw) == expected


@pytest.mark.parametrize("raw", [1e30, "1e30", 10**40, {"amount": "9" * 40}])
def test_amounts_beyond_decimal_precision_are_treated_as_absent(raw):
    assert normalize_amount_cents(raw) is None


def test_days_beyond_decimal_precision_are_treated_as_absent():
    assert positive_days("1e30") is None
    assert extract_candidate_days({"metadata": {"days": 10**40}}) is None


def test_out_of_range_amount_does_not_break_extraction():
    fields = extract_fields({"data": {"status": "approved", "amount": 1e30}})

    assert fields.approved is True
    assert fields.amount_cents is None


def test_data_status_takes_precedence_over_top_level():
    evt = {"status": "pending", "data": {"status": "Approved"}}
    assert extract_status(evt) == "approved"


def test_camel_case_status_path():
    assert extract_status({"data": {"paymentStatus": "PAID"}}) == "paid"


def test_status_found_by_scan_when_no_known_path():
    evt = {"payload": {"a": {"b": {"c": {"Status": "Approved"}}}}}
    assert extract_status(evt) == "approved"


def test_amount_major_units_and_nested_value():
    assert extract_amount_cents({"data": {"amount": "7.99"}}) == 799
    assert extract_amount_cents({"data": {"payment": {"amount": {"value": 35}}}}) == 35
    assert extract_amount_cents({"order": {"valor": 59.99}}) == 5999


def test_reference_aliases():
    assert extract_reference({"data": {"order_nsu": f"user_{UUID}_days_30"}}) == f"user_{UUID}_days_30"
    assert extract_reference({"externalReference": " ref-1 "}) == "ref-1"
    assert extract_reference({"data": {}}) is None


def test_payer_email_found_in_nested_customer_by_scan():
    evt = {"data": {"order": {"customer": {"Email": "Buyer@Example.com"}}}}
    assert extract_payer_email(evt) == "Buyer@Example.com"


def test_payer_email_requires_at_sign():
    assert extract_payer_email({"email": "not-an-email"}) is None


def test_payment_id_aliases_and_numeric_ids():
    assert extract_provider_payment_id({"data": {"transaction_nsu": "nsu-1"}}) == "nsu-1"
    assert extract_provider_payment_id({"invoice_slug": "slug-9"}) == "slug-9"
    assert extract_provider_payment_id({"data": {"id": 12345}}) == "12345"


def test_payment_id_falls_back_to_stable_payload_hash():
    first = {"status": "approved", "amount": 799}
    second = {"amount": 799, "status": "approved"}

    pid = extract_provider_payment_id(first)
    assert pid is not None
    assert len(pid) == 32
    assert all(c in "0123456789abcdef" for c in pid)
    assert pid == extract_provider_payment_id(second)
    assert pid != extract_provider_payment_id({"status": "approved", "amount": 800})


def test_fallback_payment_id_for_non_object_payload():
    assert len(fallback_payment_id(None)) == 32
    assert fallback_payment_id("raw") == fallback_payment_id("raw")


def test_candidate_user_id_requires_uuid_shape():
    assert extract_candidate_user_id({"metadata": {"uid": UUID}}) == UUID
    assert extract_candidate_user_id({"metadata": {"uid": "user-42"}}) is None


def test_candidate_days_must_be_positive():
    assert extract_candidate_days({"metadata": {"days": "180"}}) == 180
    assert extract_candidate_days({"metadata": {"days": 0}}) is None
    assert extract_candidate_days({"days": -3}) is None


def test_extract_fields_full_payload():
    evt = {
        "event": "payment.approved",
        "data": {
            "status": "approved",
            "reference": f"user_{UUID}_days_30",
            "amount": 799,
            "payment_id": "abc",
        },
    }

    fields = extract_fields(evt)

    assert fields.event_name == "payment.approved"
    assert fields.status == "approved"
    assert fields.approved is True
    assert fields.amount_cents == 799
    assert fields.reference_raw == f"user_{UUID}_days_30"
    assert fields.provider_payment_id == "abc"
    assert fields.payer_email is None


@pytest.mark.parametrize("payload", [None, "text", 42, [1, 2, 3]])
def test_extract_fields_tolerates_non_object_payloads(payload):
    fields = extract_fields(payload)

    assert fields.approved is None
    assert fields.status is None
    assert fields.amount_cents is None
    assert fields.reference_raw is None
    assert fields.provider_payment_id == fallback_payment_id(payload)
