"""
InfinitePay 웹훅 처리 서비스 (결과 결정 상태 기계)

    received → 승인 추론 → False: ignored
                         → None : skipped(unknown_approval_state)
                         → True : 식별 → days/payment_id 검증 → 크레딧 적용 → applied | error

모든 상태 전이는 반환 전에 감사 로그 1건을 남긴다 (best effort).
"""
import logging
from typing import Any, Optional

from infinitepay_webhook.core.config import Settings
from infinitepay_webhook.core.interfaces import IPaymentStore
from infinitepay_webhook.core.responses import CreditApplicationError
from infinitepay_webhook.schemas import Decision, IdentityResolution, IntentStatus, NormalizedFields, Outcome
from infinitepay_webhook.services.audit_logger import AuditLogger
from infinitepay_webhook.services.field_extractor import extract_fields
from infinitepay_webhook.services.identity_resolver import IdentityResolver

logger = logging.getLogger(__name__)

REASON_NOT_APPROVED = "not_approved"
REASON_UNKNOWN_APPROVAL = "unknown_approval_state"
REASON_MISSING_USER_OR_DAYS = "missing_user_or_days"
REASON_MISSING_PAYMENT_ID = "missing_provider_payment_id"
REASON_CREDIT_FAILED = "credit_application_failed"
REASON_UNEXPECTED = "unexpected_exception"
REASON_EXTRACTION_FAILED = "extraction_failed"


class WebhookService:
    """원시 웹훅 이벤트를 단일 크레딧 적용 결정으로 변환"""

    def __init__(
        self,
        store: IPaymentStore,
        settings: Settings,
        audit_logger: Optional[AuditLogger] = None,
        resolver: Optional[IdentityResolver] = None,
    ):
        self.store = store
        self.settings = settings
        self.audit_logger = audit_logger or AuditLogger(store, settings.PAYMENT_PROVIDER)
        self.resolver = resolver or IdentityResolver(store, settings)

    async def process(self, event: Any) -> Decision:
        """웹훅 이벤트 1건 처리

        크레딧 적용 실패는 CreditApplicationError 로, 그 외 예상치 못한 오류는 원래 예외로 다시 던진다.
        두 경우 모두 error 감사 로그를 먼저 남긴다.
        """
        try:
            fields = extract_fields(event, self.resolver.limits)
        except Exception as e:
            # 추출 단계 오류도 감사 로그에 남긴다 (원시 페이로드 보존)
            logger.error("[INFINITEPAY] field extraction failed: %s", e, exc_info=True)
            await self.audit_logger.record(
                Decision(Outcome.ERROR, NormalizedFields(provider_payment_id=None), REASON_EXTRACTION_FAILED), event
            )
            raise

        logger.info(
            "[INFINITEPAY] event=%s status=%s approved=%s amount=%s payment_id=%s",
            fields.event_name,
            fields.status,
            fields.approved,
            fields.amount_cents,
            fields.provider_payment_id,
        )
        await self.audit_logger.record(Decision(Outcome.RECEIVED, fields), event)

        try:
            return await self._decide(event, fields)
        except CreditApplicationError:
            raise
        except Exception as e:
            logger.error("[INFINITEPAY] webhook processing failed: %s", e, exc_info=True)
            await self.audit_logger.record(Decision(Outcome.ERROR, fields, REASON_UNEXPECTED), event)
            raise

    async def _decide(self, event: Any, fields: NormalizedFields) -> Decision:
        if fields.approved is False:
            return await self._finish(Decision(Outcome.IGNORED, fields, REASON_NOT_APPROVED), event)

        if fields.approved is None:
            return await self._finish(Decision(Outcome.SKIPPED, fields, REASON_UNKNOWN_APPROVAL), event)

        identity = await self.resolver.resolve(event, fields)

        if not identity.resolved:
            reason = REASON_MISSING_USER_OR_DAYS
            if identity.failure_reason:
                reason = f"{reason}:{identity.failure_reason}"
            logger.error(
                "[INFINITEPAY] approved webhook without enough identification: event=%s reference=%s amount=%s payment_id=%s reasons=%s",
                fields.event_name,
                fields.reference_raw,
                fields.amount_cents,
                fields.provider_payment_id,
                identity.reasons,
            )
            return await self._finish(self._decision(Outcome.SKIPPED, fields, identity, reason), event)

        if not fields.provider_payment_id:
            logger.error("[INFINITEPAY] approved webhook without provider payment id: event=%s", fields.event_name)
            await self._mark_intent(identity, fields, IntentStatus.ERROR)
            return await self._finish(
                self._decision(Outcome.SKIPPED, fields, identity, REASON_MISSING_PAYMENT_ID), event
            )

        try:
            await self.store.apply_credit(
                user_id=identity.user_id,
                days=identity.days,
                amount_cents=fields.amount_cents or 0,
                provider=self.settings.PAYMENT_PROVIDER,
                provider_payment_id=fields.provider_payment_id,
                description=self.settings.CREDIT_DESCRIPTION,
                raw_event=event,
            )
        except Exception as e:
            logger.error(
                "[INFINITEPAY] credit application failed: user=%s days=%s payment_id=%s error=%s",
                identity.user_id,
                identity.days,
                fields.provider_payment_id,
                e,
            )
            await self._mark_intent(identity, fields, IntentStatus.ERROR)
            await self.audit_logger.record(
                self._decision(Outcome.ERROR, fields, identity, REASON_CREDIT_FAILED), event
            )
            raise CreditApplicationError(str(e), provider_payment_id=fields.provider_payment_id) from e

        logger.info(
            "[INFINITEPAY] credit applied: user=%s days=%s payment_id=%s source=%s",
            identity.user_id,
            identity.days,
            fields.provider_payment_id,
            identity.source,
        )
        await self._mark_intent(identity, fields, IntentStatus.APPLIED)
        return await self._finish(self._decision(Outcome.APPLIED, fields, identity), event)

    @staticmethod
    def _decision(
        outcome: Outcome,
        fields: NormalizedFields,
        identity: IdentityResolution,
        reason: Optional[str] = None,
    ) -> Decision:
        return Decision(
            outcome=outcome,
            fields=fields,
            outcome_reason=reason,
            user_id=identity.user_id,
            days=identity.days,
            identity_source=identity.source,
            claimed_intent_id=identity.claimed_intent_id,
        )

    async def _finish(self, decision: Decision, event: Any) -> Decision:
        await self.audit_logger.record(decision, event)
        return decision

    async def _mark_intent(self, identity: IdentityResolution, fields: NormalizedFields, status: IntentStatus) -> None:
        """선점한 intent 의 최종 상태 기록 (실패해도 결과는 바뀌지 않음)"""
        if identity.claimed_intent_id is None:
            return
        try:
            updated = await self.store.patch_intent(
                identity.claimed_intent_id,
                IntentStatus.MATCHED.value,
                status.value,
                {"provider_payment_id": fields.provider_payment_id},
            )
            if updated != 1:
                logger.warning(
                    "[INFINITEPAY] intent %s not marked %s (updated=%s)",
                    identity.claimed_intent_id,
                    status.value,
                    updated,
                )
        except Exception as e:
            logger.error("[INFINITEPAY] intent %s mark %s failed: %s", identity.claimed_intent_id, status.value, e)
