"""
결제 승인 여부 추론

첫 번째로 일치하는 규칙이 결과를 결정한다 (True / False / None=판단 불가).
판단 불가 상태를 False 로 강제하지 않는다 - 미확정 결제는 별도 사유로 기록된다.
"""
from typing import Any, Optional

from infinitepay_webhook.services.tree_scanner import first_present, path


APPROVAL_FLAG_KEYS = (
    "approved",
    "paid",
    "is_paid",
    "isPaid",
    "is_approved",
    "isApproved",
    "aprovado",
    "pago",
)

APPROVAL_TIMESTAMP_KEYS = (
    "paid_at",
    "paidAt",
    "approved_at",
    "approvedAt",
    "confirmed_at",
    "confirmedAt",
    "captured_at",
    "capturedAt",
    "pago_em",
    "aprovado_em",
)

APPROVED_STATUSES = {
    "approved",
    "paid",
    "succeeded",
    "success",
    "completed",
    "confirmed",
    "captured",
    "settled",
    "authorized",
    "aprovado",
    "aprovada",
    "pago",
    "paga",
    "concluido",
    "concluído",
    "confirmado",
    "confirmada",
    "capturado",
    "liquidado",
    "autorizado",
    "autorizada",
}

REJECTED_STATUSES = {
    "rejected",
    "refused",
    "failed",
    "canceled",
    "cancelled",
    "chargeback",
    "refunded",
    "expired",
    "voided",
    "rejeitado",
    "rejeitada",
    "recusado",
    "recusada",
    "falhou",
    "falha",
    "cancelado",
    "cancelada",
    "estornado",
    "estornada",
    "reembolsado",
    "expirado",
    "expirada",
    "anulado",
    "negado",
}

APPROVED_EVENTS = {
    "payment.approved",
    "payment.paid",
    "payment.succeeded",
    "payment.confirmed",
    "payment.captured",
    "transaction.approved",
    "transaction.paid",
    "transaction.succeeded",
    "invoice.paid",
    "order.paid",
    "charge.succeeded",
}

REJECTED_EVENTS = {
    "payment.rejected",
    "payment.refused",
    "payment.failed",
    "payment.canceled",
    "payment.cancelled",
    "payment.refunded",
    "payment.expired",
    "payment.chargeback",
    "transaction.rejected",
    "transaction.failed",
    "transaction.canceled",
    "transaction.refunded",
    "invoice.expired",
    "charge.failed",
    "charge.refunded",
}

_FLAG_ACCESSORS = [path("data", key) for key in APPROVAL_FLAG_KEYS] + [path(key) for key in APPROVAL_FLAG_KEYS]
_TIMESTAMP_ACCESSORS = [path("data", key) for key in APPROVAL_TIMESTAMP_KEYS] + [
    path(key) for key in APPROVAL_TIMESTAMP_KEYS
]


def parse_bool_like(value: Any) -> Optional[bool]:
    """true/"true"/1/"1" → True, false/"false"/0/"0" → False, 그 외 None"""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if value == 1:
            return True
        if value == 0:
            return False
        return None
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in ("true", "1"):
            return True
        if normalized in ("false", "0"):
            return False
    return None


def _explicit_flag(event: Any) -> Optional[bool]:
    for accessor in _FLAG_ACCESSORS:
        flag = parse_bool_like(accessor(event))
        if flag is not None:
            return flag
    return None


def infer_approval(
    event: Any,
    *,
    status: Optional[str] = None,
    event_name: Optional[str] = None,
    amount_cents: Optional[int] = None,
    paid_amount_cents: Optional[int] = None,
) -> Optional[bool]:
    """승인 여부 추론 - 규칙 순서: 명시 플래그 > 승인 시각 > 금액 비교 > 상태 > 이벤트명"""

    flag = _explicit_flag(event)
    if flag is not None:
        return flag

    if first_present(event, _TIMESTAMP_ACCESSORS) is not None:
        return True

    # 부분 결제는 구분하지 않는다: paid >= amount 이면 승인
    if amount_cents is not None and paid_amount_cents is not None:
        if paid_amount_cents >= amount_cents:
            return True
        if paid_amount_cents == 0:
            return False

    if status:
        if status in APPROVED_STATUSES:
            return True
        if status in REJECTED_STATUSES:
            return False

    if event_name:
        if event_name in APPROVED_EVENTS:
            return True
        if event_name in REJECTED_EVENTS:
            return False

    return None
