"""
InfinitePay 웹훅 필드 추출기

필드마다 알려진 고정 경로(최상위/data 하위, snake_case/camelCase, 공급자 별칭)를 순서대로 시도하고,
모두 비어 있으면 트리 스캐너로 필드별 키 집합을 탐색한다.
"""
import hashlib
import json
import logging
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Callable, Iterable, Optional, Sequence

from infinitepay_webhook.schemas import NormalizedFields
from infinitepay_webhook.services.approval import infer_approval
from infinitepay_webhook.services.tree_scanner import (
    DEFAULT_LIMITS,
    Accessor,
    ScanLimits,
    find_by_keys,
    path,
)

logger = logging.getLogger(__name__)

_UUID_SHAPE = re.compile(r"^[0-9a-fA-F-]{36}$")
_MAJOR_UNIT_CEILING = Decimal(1000)


EVENT_NAME_PATHS = [
    path("event"),
    path("type"),
    path("name"),
    path("event_type"),
    path("eventType"),
    path("data", "event"),
    path("data", "event_type"),
]
EVENT_NAME_SCAN_KEYS = ("event", "event_type", "event_name")

STATUS_PATHS = [
    path("data", "status"),
    path("data", "payment_status"),
    path("data", "paymentStatus"),
    path("data", "transaction_status"),
    path("data", "transactionStatus"),
    path("data", "payment", "status"),
    path("data", "transaction", "status"),
    path("status"),
    path("payment_status"),
    path("paymentStatus"),
]
STATUS_SCAN_KEYS = ("status", "payment_status", "transaction_status", "situacao")

AMOUNT_PATHS = [
    path("data", "amount"),
    path("data", "total_amount"),
    path("data", "totalAmount"),
    path("data", "amount_cents"),
    path("data", "amountCents"),
    path("data", "payment", "amount"),
    path("data", "invoice", "amount"),
    path("amount"),
    path("total_amount"),
    path("totalAmount"),
]
AMOUNT_SCAN_KEYS = ("amount", "total_amount", "amount_cents", "valor")

PAID_AMOUNT_PATHS = [
    path("data", "paid_amount"),
    path("data", "paidAmount"),
    path("data", "amount_paid"),
    path("data", "amountPaid"),
    path("data", "payment", "paid_amount"),
    path("paid_amount"),
    path("paidAmount"),
    path("amount_paid"),
]
PAID_AMOUNT_SCAN_KEYS = ("paid_amount", "amount_paid", "valor_pago")

REFERENCE_PATHS = [
    path("data", "reference"),
    path("data", "external_reference"),
    path("data", "externalReference"),
    path("data", "order_nsu"),
    path("data", "orderNsu"),
    path("data", "metadata", "reference"),
    path("data", "metadata", "ref"),
    path("data", "metadata", "external_reference"),
    path("reference"),
    path("external_reference"),
    path("externalReference"),
    path("order_nsu"),
    path("orderNsu"),
]
REFERENCE_SCAN_KEYS = ("reference", "external_reference", "order_nsu", "ref")

PAYER_EMAIL_PATHS = [
    path("data", "customer", "email"),
    path("data", "payer", "email"),
    path("data", "buyer", "email"),
    path("data", "customer_email"),
    path("data", "customerEmail"),
    path("data", "buyer_email"),
    path("data", "buyerEmail"),
    path("data", "email"),
    path("customer", "email"),
    path("payer", "email"),
    path("email"),
]
PAYER_EMAIL_SCAN_KEYS = ("email", "customer_email", "payer_email", "buyer_email")

PAYMENT_ID_PATHS = [
    path("data", "payment_id"),
    path("data", "paymentId"),
    path("data", "id"),
    path("data", "transaction_id"),
    path("data", "transactionId"),
    path("data", "transaction_nsu"),
    path("data", "transactionNsu"),
    path("data", "invoice_slug"),
    path("data", "invoiceSlug"),
    path("payment_id"),
    path("paymentId"),
    path("transaction_nsu"),
    path("invoice_slug"),
    path("id"),
]
PAYMENT_ID_SCAN_KEYS = ("payment_id", "transaction_id", "transaction_nsu", "invoice_slug")

USER_ID_PATHS = [
    path("data", "uid"),
    path("data", "user_id"),
    path("data", "userId"),
    path("data", "metadata", "uid"),
    path("data", "metadata", "user_id"),
    path("data", "metadata", "userId"),
    path("metadata", "uid"),
    path("metadata", "user_id"),
    path("metadata", "userId"),
    path("uid"),
    path("user_id"),
    path("userId"),
]
USER_ID_SCAN_KEYS = ("uid", "user_id")

DAYS_PATHS = [
    path("data", "days"),
    path("data", "metadata", "days"),
    path("data", "metadata", "plan_days"),
    path("metadata", "days"),
    path("metadata", "plan_days"),
    path("days"),
    path("plan_days"),
]
DAYS_SCAN_KEYS = ("days", "plan_days")


def _unwrap_amount(value: Any) -> Any:
    if isinstance(value, dict):
        if "amount" in value:
            return value["amount"]
        if "value" in value:
            return value["value"]
    return value


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    elif not isinstance(value, (int, float, Decimal)):
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def _round_half_up(value: Decimal) -> Optional[int]:
    """정수로 반올림 - 유효 자릿수(28)를 넘는 값은 부재로 간주"""
    try:
        return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except (InvalidOperation, OverflowError):
        logger.warning("[INFINITEPAY] numeric value out of range ignored: %s", value)
        return None


def normalize_amount_cents(raw: Any) -> Optional[int]:
    """금액을 센트 단위 정수로 정규화

    1000 미만이면서 소수부가 있는 값(7.99)만 주 통화 단위로 보고 100 을 곱한다.
    정수 값(799)은 이미 센트로 간주한다.
    """
    value = _to_decimal(_unwrap_amount(raw))
    if value is None:
        return None
    if 0 < value < _MAJOR_UNIT_CEILING and value != value.to_integral_value():
        value = value * 100
    return _round_half_up(value)


def looks_like_uuid(value: Any) -> bool:
    return isinstance(value, str) and bool(_UUID_SHAPE.match(value.strip()))


def _lower_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip().lower() or None


def _text(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip() or None
    return None


def _identifier(value: Any) -> Optional[str]:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        return None
    return str(value).strip() or None


def _email(value: Any) -> Optional[str]:
    if isinstance(value, str) and "@" in value:
        return value.strip()
    return None


def _user_id(value: Any) -> Optional[str]:
    return value.strip() if looks_like_uuid(value) else None


def positive_days(value: Any) -> Optional[int]:
    number = _to_decimal(value)
    if number is None or number <= 0:
        return None
    days = _round_half_up(number)
    return days if days is not None and days > 0 else None


def _resolve(
    event: Any,
    accessors: Sequence[Accessor],
    scan_keys: Iterable[str],
    coerce: Callable[[Any], Any],
    limits: ScanLimits,
) -> Any:
    """고정 경로를 순서대로 시도한 뒤 트리 스캔으로 대체"""
    for accessor in accessors:
        value = coerce(accessor(event))
        if value is not None:
            return value
    return coerce(find_by_keys(event, scan_keys, limits))


def fallback_payment_id(event: Any) -> Optional[str]:
    """페이로드 전체의 SHA-256 앞 32자 - 같은 페이로드면 항상 같은 값"""
    try:
        serialized = json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    except (TypeError, ValueError, RecursionError) as e:
        logger.warning("[INFINITEPAY] payload not serializable for fallback payment id: %s", e)
        return None
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()[:32]


def extract_event_name(event: Any, limits: ScanLimits = DEFAULT_LIMITS) -> Optional[str]:
    return _resolve(event, EVENT_NAME_PATHS, EVENT_NAME_SCAN_KEYS, _lower_text, limits)


def extract_status(event: Any, limits: ScanLimits = DEFAULT_LIMITS) -> Optional[str]:
    return _resolve(event, STATUS_PATHS, STATUS_SCAN_KEYS, _lower_text, limits)


def extract_amount_cents(event: Any, limits: ScanLimits = DEFAULT_LIMITS) -> Optional[int]:
    return _resolve(event, AMOUNT_PATHS, AMOUNT_SCAN_KEYS, normalize_amount_cents, limits)


def extract_paid_amount_cents(event: Any, limits: ScanLimits = DEFAULT_LIMITS) -> Optional[int]:
    return _resolve(event, PAID_AMOUNT_PATHS, PAID_AMOUNT_SCAN_KEYS, normalize_amount_cents, limits)


def extract_reference(event: Any, limits: ScanLimits = DEFAULT_LIMITS) -> Optional[str]:
    return _resolve(event, REFERENCE_PATHS, REFERENCE_SCAN_KEYS, _text, limits)


def extract_payer_email(event: Any, limits: ScanLimits = DEFAULT_LIMITS) -> Optional[str]:
    return _resolve(event, PAYER_EMAIL_PATHS, PAYER_EMAIL_SCAN_KEYS, _email, limits)


def extract_provider_payment_id(event: Any, limits: ScanLimits = DEFAULT_LIMITS) -> Optional[str]:
    found = _resolve(event, PAYMENT_ID_PATHS, PAYMENT_ID_SCAN_KEYS, _identifier, limits)
    if found:
        return found
    return fallback_payment_id(event)


def extract_candidate_user_id(event: Any, limits: ScanLimits = DEFAULT_LIMITS) -> Optional[str]:
    return _resolve(event, USER_ID_PATHS, USER_ID_SCAN_KEYS, _user_id, limits)


def extract_candidate_days(event: Any, limits: ScanLimits = DEFAULT_LIMITS) -> Optional[int]:
    return _resolve(event, DAYS_PATHS, DAYS_SCAN_KEYS, positive_days, limits)


def extract_fields(event: Any, limits: ScanLimits = DEFAULT_LIMITS) -> NormalizedFields:
    """원시 이벤트 → NormalizedFields (승인 추론 포함)"""
    event_name = extract_event_name(event, limits)
    status = extract_status(event, limits)
    amount_cents = extract_amount_cents(event, limits)
    paid_amount_cents = extract_paid_amount_cents(event, limits)

    approved = infer_approval(
        event,
        status=status,
        event_name=event_name,
        amount_cents=amount_cents,
        paid_amount_cents=paid_amount_cents,
    )

    return NormalizedFields(
        provider_payment_id=extract_provider_payment_id(event, limits),
        event_name=event_name,
        status=status,
        approved=approved,
        amount_cents=amount_cents,
        paid_amount_cents=paid_amount_cents,
        reference_raw=extract_reference(event, limits),
        payer_email=extract_payer_email(event, limits),
        candidate_user_id=extract_candidate_user_id(event, limits),
        candidate_days=extract_candidate_days(event, limits),
    )
