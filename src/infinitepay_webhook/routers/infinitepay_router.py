"""
InfinitePay Webhook Router

- POST /api/infinitepay/webhook : 결제 알림 수신 → 정규화/승인 추론/식별 → 크레딧 적용
- GET  /api/infinitepay/webhook : 공급자 엔드포인트 확인 (handshake 감사 로그만 기록)
- GET  /api/infinitepay/health  : 설정/저장소 연결 진단 (write_log=true 면 감사 로그 기록도 확인)

처리된 모든 결과는 HTTP 200, 재전송이 필요한 인프라 오류만 HTTP 500 으로 응답한다.
"""
import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from infinitepay_webhook.core.config import Settings, get_settings
from infinitepay_webhook.core.factory import get_audit_logger, get_optional_payment_store, get_webhook_service
from infinitepay_webhook.core.interfaces import IPaymentStore
from infinitepay_webhook.core.responses import (
    CreditApplicationError,
    ExternalServiceException,
    applied_ack,
    error_ack,
    error_response,
    received_ack,
    skipped_ack,
    success_response,
)
from infinitepay_webhook.schemas import Decision, Outcome
from infinitepay_webhook.services.audit_logger import AuditLogger
from infinitepay_webhook.services.webhook_service import WebhookService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/infinitepay", tags=["webhooks", "infinitepay"])


def _parse_body(raw: bytes) -> Any:
    """JSON 이 아니거나 중첩이 너무 깊으면 비객체 페이로드와 같게 취급 (필드 부재로 처리됨)"""
    if not raw:
        return None
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError, RecursionError):
        logger.warning("[INFINITEPAY] webhook body is not valid JSON (len=%s)", len(raw))
        return None


def _ack_for(decision: Decision) -> Dict[str, Any]:
    if decision.outcome is Outcome.APPLIED:
        return applied_ack()
    if decision.outcome is Outcome.SKIPPED:
        return skipped_ack()
    return received_ack()


@router.post("/webhook")
async def infinitepay_webhook(
    request: Request,
    service: WebhookService = Depends(get_webhook_service),
):
    raw = await request.body()
    logger.info("[INFINITEPAY] webhook received: len=%s", len(raw))
    event = _parse_body(raw)

    try:
        decision = await service.process(event)
    except CreditApplicationError as e:
        logger.error("[INFINITEPAY] responding 500 for redelivery (payment_id=%s)", e.provider_payment_id)
        return JSONResponse(status_code=500, content=error_ack(e.error_code))
    except ExternalServiceException as e:
        logger.error("[INFINITEPAY] store unavailable during webhook processing: %s", e.message)
        return JSONResponse(status_code=500, content=error_ack(e.error_code))
    except Exception as e:
        logger.error("[INFINITEPAY] unexpected webhook error: %s", e)
        return JSONResponse(status_code=500, content=error_ack("internal_error"))

    logger.info(
        "[INFINITEPAY] webhook handled: outcome=%s reason=%s",
        decision.outcome.value,
        decision.outcome_reason,
    )
    return JSONResponse(status_code=200, content=_ack_for(decision))


@router.get("/webhook")
async def infinitepay_webhook_handshake(
    request: Request,
    audit_logger: AuditLogger = Depends(get_audit_logger),
):
    await audit_logger.record_handshake({"query": dict(request.query_params)})
    return JSONResponse(status_code=200, content=received_ack())


@router.get("/health")
async def infinitepay_health(
    write_log: bool = False,
    settings: Settings = Depends(get_settings),
    store: Optional[IPaymentStore] = Depends(get_optional_payment_store),
    audit_logger: AuditLogger = Depends(get_audit_logger),
):
    """설정 존재 여부와 저장소 연결 상태 (비밀값은 노출하지 않음)"""
    missing = settings.missing_store_settings()
    data: Dict[str, Any] = {
        "config": {
            "supabase_url": "SUPABASE_URL" not in missing,
            "service_role_key": "SUPABASE_SERVICE_ROLE_KEY" not in missing,
        },
        "connectivity": {"ok": None, "checked": False},
        "audit_log": audit_logger.stats(),
    }

    if store is not None:
        data["connectivity"] = await store.ping()

    if write_log:
        data["audit_log"]["write_ok"] = await audit_logger.record_healthcheck()
        data["audit_log"].update(audit_logger.stats())

    healthy = (
        not missing
        and data["connectivity"].get("ok") is True
        and data["audit_log"].get("write_ok", True) is True
    )
    if healthy:
        return success_response(data=data, message="infinitepay webhook healthy")

    return JSONResponse(
        status_code=503,
        content=error_response(
            message="infinitepay webhook degraded",
            error_code="HEALTHCHECK_FAILED",
            data=data,
        ).model_dump(),
    )
