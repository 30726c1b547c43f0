"""
웹훅 파이프라인 데이터 모델
"""
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Outcome(str, Enum):
    """감사 로그에 기록되는 처리 결과"""
    RECEIVED = "received"
    IGNORED = "ignored"
    SKIPPED = "skipped"
    APPLIED = "applied"
    ERROR = "error"
    HANDSHAKE = "handshake"
    HEALTHCHECK = "healthcheck"


class IntentStatus(str, Enum):
    PENDING = "pending"
    MATCHED = "matched"
    APPLIED = "applied"
    ERROR = "error"


@dataclass(frozen=True)
class ParsedReference:
    user_id: str
    days: int


@dataclass(frozen=True)
class NormalizedFields:
    """원시 이벤트에서 추출한 정규화 필드 (approved: None 은 판단 불가)"""
    provider_payment_id: Optional[str]
    event_name: Optional[str] = None
    status: Optional[str] = None
    approved: Optional[bool] = None
    amount_cents: Optional[int] = None
    paid_amount_cents: Optional[int] = None
    reference_raw: Optional[str] = None
    payer_email: Optional[str] = None
    candidate_user_id: Optional[str] = None
    candidate_days: Optional[int] = None

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class IdentityResolution:
    """식별 전략 체인의 결과와 진단 사유"""
    user_id: Optional[str] = None
    days: Optional[int] = None
    source: Optional[str] = None
    reasons: List[str] = field(default_factory=list)
    claimed_intent_id: Optional[Any] = None

    @property
    def resolved(self) -> bool:
        return bool(self.user_id) and isinstance(self.days, int) and self.days > 0

    @property
    def failure_reason(self) -> Optional[str]:
        return self.reasons[-1] if self.reasons else None


@dataclass(frozen=True)
class Decision:
    """파이프라인 최종 결정"""
    outcome: Outcome
    fields: NormalizedFields
    outcome_reason: Optional[str] = None
    user_id: Optional[str] = None
    days: Optional[int] = None
    identity_source: Optional[str] = None
    claimed_intent_id: Optional[Any] = None

    @property
    def provider_payment_id(self) -> Optional[str]:
        return self.fields.provider_payment_id

    def to_log_row(self, provider: str, raw_event: Any = None) -> Dict[str, Any]:
        """감사 로그 테이블 행 (전체 컬럼)"""
        f = self.fields
        return {
            "provider": provider,
            "outcome": self.outcome.value,
            "outcome_reason": self.outcome_reason,
            "event_name": f.event_name,
            "status": f.status,
            "approved": f.approved,
            "amount_cents": f.amount_cents,
            "paid_amount_cents": f.paid_amount_cents,
            "reference": f.reference_raw,
            "payer_email": f.payer_email,
            "provider_payment_id": f.provider_payment_id,
            "user_id": self.user_id,
            "days": self.days,
            "identity_source": self.identity_source,
            "intent_id": self.claimed_intent_id,
            "raw_event": raw_event,
        }
