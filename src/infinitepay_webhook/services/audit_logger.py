"""
웹훅 감사 로그 기록기

기록 실패는 절대 요청 실패로 이어지지 않는다.
알 수 없는 컬럼 오류면 최소 컬럼 집합으로 한 번 재시도하고, 그래도 실패하면 버리고 카운터만 올린다.
"""
import logging
from typing import Any, Dict, Optional

from infinitepay_webhook.core.interfaces import IPaymentStore
from infinitepay_webhook.core.responses import UnknownColumnError
from infinitepay_webhook.schemas import Decision, NormalizedFields, Outcome

logger = logging.getLogger(__name__)

MINIMAL_LOG_COLUMNS = (
    "provider",
    "outcome",
    "outcome_reason",
    "provider_payment_id",
    "raw_event",
)


class AuditLogger:
    """best-effort 감사 로그 기록기"""

    def __init__(self, store: Optional[IPaymentStore], provider: str):
        self.store = store
        self.provider = provider
        self.dropped = 0
        self.narrowed = 0

    async def write(self, row: Dict[str, Any]) -> bool:
        """행 기록 - 성공 여부만 반환하고 예외는 밖으로 내보내지 않는다"""
        if self.store is None:
            self.dropped += 1
            return False

        try:
            await self.store.insert_log(row)
            return True
        except UnknownColumnError as e:
            logger.warning("[INFINITEPAY] audit log schema mismatch, retrying with minimal columns: %s", e.message)
        except Exception as e:
            logger.error("[INFINITEPAY] audit log write failed (outcome=%s): %s", row.get("outcome"), e)
            self.dropped += 1
            return False

        minimal_row = {column: row.get(column) for column in MINIMAL_LOG_COLUMNS}
        try:
            await self.store.insert_log(minimal_row)
            self.narrowed += 1
            return True
        except Exception as e:
            logger.error("[INFINITEPAY] audit log minimal write failed (outcome=%s): %s", row.get("outcome"), e)
            self.dropped += 1
            return False

    async def record(self, decision: Decision, raw_event: Any = None) -> bool:
        return await self.write(decision.to_log_row(self.provider, raw_event))

    async def record_handshake(self, request_info: Any = None) -> bool:
        """공급자의 엔드포인트 확인 요청 기록"""
        decision = Decision(Outcome.HANDSHAKE, NormalizedFields(provider_payment_id=None), "endpoint_check")
        return await self.record(decision, request_info)

    async def record_healthcheck(self) -> bool:
        decision = Decision(Outcome.HEALTHCHECK, NormalizedFields(provider_payment_id=None), "diagnostic_write")
        return await self.record(decision)

    def stats(self) -> Dict[str, int]:
        return {"dropped": self.dropped, "narrowed": self.narrowed}
