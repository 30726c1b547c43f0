"""
결제 이벤트의 사용자/이용일 식별

우선순위 체인으로 (user_id, days)를 결정한다. 각 전략은 아직 비어 있는 값만 채운다.
    1. reference 문자열 파싱
    2. reference 필드가 없으면 페이로드 전체에서 reference 패턴 스캔
    3. 메타데이터 uid/user_id/days 필드
    4. 금액 → 이용일 표 (days 만 채움)
    5. 결제자 이메일로 사용자 조회
    6. 최근 pending 결제 intent 매칭 (후보가 정확히 1건일 때만 조건부로 선점)
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from infinitepay_webhook.core.config import Settings
from infinitepay_webhook.core.interfaces import IPaymentStore
from infinitepay_webhook.schemas import IdentityResolution, IntentStatus, NormalizedFields, ParsedReference
from infinitepay_webhook.services.field_extractor import positive_days
from infinitepay_webhook.services.tree_scanner import ScanLimits, find_by_pattern, is_present

logger = logging.getLogger(__name__)

_REFERENCE_DAYS = re.compile(r"^user_([0-9a-fA-F-]{36})_days_(\d{1,4})$")
_REFERENCE_NUMERIC = re.compile(r"^user_([0-9a-fA-F-]{36})_(\d{1,4})$")
_REFERENCE_LEGACY = re.compile(r"^user_([0-9a-fA-F-]{36})_(premium|standard)$")
REFERENCE_SCAN_PATTERN = re.compile(r"^user_[0-9a-fA-F-]{36}_(?:days_\d{1,4}|\d{1,4}|premium|standard)$")

LEGACY_PLAN_DAYS = {"premium": 30, "standard": 0}

# 프론트엔드 가격표와 맞춰야 한다 (센트 → 이용일)
AMOUNT_TO_DAYS = {
    799: 30,
    3500: 180,
    5999: 365,
}

# 진단 사유
REASON_MATCHED = "matched"
REASON_NO_CANDIDATE = "no_candidate"
REASON_MULTIPLE_CANDIDATES = "multiple_candidates"
REASON_CLAIM_FAILED = "claim_failed"
REASON_INVALID_AMOUNT = "invalid_amount"
REASON_INVALID_INTENT_ROW = "invalid_intent_row"
REASON_INVALID_REFERENCE = "invalid_reference"
REASON_EMAIL_NOT_FOUND = "email_not_found"


def parse_reference(reference: Any) -> Optional[ParsedReference]:
    """user_<uuid>_days_<N> / user_<uuid>_<N> / user_<uuid>_premium|standard"""
    if not isinstance(reference, str):
        return None
    reference = reference.strip()
    if not reference:
        return None

    m = _REFERENCE_DAYS.match(reference) or _REFERENCE_NUMERIC.match(reference)
    if m:
        return ParsedReference(user_id=m.group(1), days=int(m.group(2)))

    m = _REFERENCE_LEGACY.match(reference)
    if m:
        return ParsedReference(user_id=m.group(1), days=LEGACY_PLAN_DAYS[m.group(2)])
    return None


def days_from_amount(amount_cents: Any) -> Optional[int]:
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int):
        return None
    return AMOUNT_TO_DAYS.get(amount_cents)


def normalize_user_id_response(resolved: Any) -> Optional[str]:
    """이메일 조회 RPC 응답(문자열 / [{user_id}] / {user_id})을 단일 ID 로 정규화"""
    if isinstance(resolved, list):
        resolved = resolved[0] if resolved else None
    if isinstance(resolved, dict):
        resolved = resolved.get("user_id")
    if isinstance(resolved, str):
        return resolved.strip() or None
    return None


def _needs_days(days: Optional[int]) -> bool:
    return days is None or days <= 0


@dataclass
class IntentMatch:
    reason: str
    intent_id: Optional[Any] = None
    user_id: Optional[str] = None
    days: Optional[int] = None

    @property
    def matched(self) -> bool:
        return self.reason == REASON_MATCHED


class IdentityResolver:
    """결제 이벤트 → (user_id, days) 식별기"""

    def __init__(
        self,
        store: IPaymentStore,
        settings: Settings,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.settings = settings
        self.now = now
        self.limits = ScanLimits(
            max_depth=settings.SCAN_MAX_DEPTH,
            max_breadth_per_array=settings.SCAN_MAX_BREADTH,
            max_keys_visited=settings.SCAN_MAX_KEYS,
        )

    async def resolve(self, event: Any, fields: NormalizedFields) -> IdentityResolution:
        result = IdentityResolution()

        parsed = parse_reference(fields.reference_raw)
        if parsed:
            result.user_id, result.days, result.source = parsed.user_id, parsed.days, "reference"
        else:
            # 참조 필드가 없거나(SKU 등) 형식이 다르면 페이로드 전체에서 user_<uuid> 문자열을 찾는다
            scanned = find_by_pattern(event, REFERENCE_SCAN_PATTERN, self.limits)
            parsed = parse_reference(scanned)
            if parsed:
                result.user_id, result.days, result.source = parsed.user_id, parsed.days, "reference_scan"
            elif fields.reference_raw:
                result.reasons.append(REASON_INVALID_REFERENCE)

        if not result.user_id and fields.candidate_user_id:
            result.user_id, result.source = fields.candidate_user_id, "metadata"
        if _needs_days(result.days) and fields.candidate_days:
            result.days = fields.candidate_days

        if _needs_days(result.days):
            inferred = days_from_amount(fields.amount_cents)
            if inferred:
                result.days = inferred

        if not result.user_id and fields.payer_email:
            user_id = normalize_user_id_response(await self.store.resolve_user_by_email(fields.payer_email))
            if user_id:
                # 공급자 측 소유 증명 없이 이메일만으로 매칭됨 - 감사 로그에 출처를 남긴다
                logger.warning(
                    "[INFINITEPAY] user resolved by payer email only (payment_id=%s)",
                    fields.provider_payment_id,
                )
                result.user_id, result.source = user_id, "email"
            else:
                result.reasons.append(REASON_EMAIL_NOT_FOUND)

        if not result.user_id:
            match = await self.claim_pending_intent(
                fields.amount_cents,
                fields.provider_payment_id,
                needs_days=_needs_days(result.days),
            )
            if match.matched:
                result.user_id, result.source = match.user_id, "intent"
                result.claimed_intent_id = match.intent_id
                if _needs_days(result.days):
                    result.days = match.days
            result.reasons.append(match.reason)

        return result

    async def claim_pending_intent(
        self,
        amount_cents: Optional[int],
        provider_payment_id: Optional[str],
        *,
        needs_days: bool = True,
    ) -> IntentMatch:
        """금액이 같은 최근 pending intent 가 정확히 1건이면 pending → matched 로 선점"""
        if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
            return IntentMatch(REASON_INVALID_AMOUNT)

        since = self.now() - timedelta(minutes=self.settings.INTENT_MATCH_WINDOW_MINUTES)
        candidates = await self.store.select_pending_intents(
            provider=self.settings.PAYMENT_PROVIDER,
            status=IntentStatus.PENDING.value,
            amount_cents=amount_cents,
            since=since,
            limit=self.settings.INTENT_MATCH_LIMIT,
        )

        if not candidates:
            return IntentMatch(REASON_NO_CANDIDATE)
        if len(candidates) > 1:
            logger.warning(
                "[INFINITEPAY] %s pending intents match amount=%s; refusing to guess",
                len(candidates),
                amount_cents,
            )
            return IntentMatch(REASON_MULTIPLE_CANDIDATES)

        intent: Dict[str, Any] = candidates[0] if isinstance(candidates[0], dict) else {}
        intent_id = intent.get("id")
        user_id = intent.get("user_id")
        days = positive_days(intent.get("days"))
        if not is_present(intent_id) or not isinstance(user_id, str) or not user_id.strip():
            return IntentMatch(REASON_INVALID_INTENT_ROW)
        if needs_days and days is None:
            return IntentMatch(REASON_INVALID_INTENT_ROW, intent_id=intent_id)

        updated = await self.store.patch_intent(
            intent_id,
            IntentStatus.PENDING.value,
            IntentStatus.MATCHED.value,
            {
                "provider_payment_id": provider_payment_id,
                "matched_at": self.now().isoformat(),
            },
        )
        if updated != 1:
            logger.info("[INFINITEPAY] intent %s claim lost (updated=%s)", intent_id, updated)
            return IntentMatch(REASON_CLAIM_FAILED, intent_id=intent_id)

        logger.info("[INFINITEPAY] intent %s matched for payment_id=%s", intent_id, provider_payment_id)
        return IntentMatch(REASON_MATCHED, intent_id=intent_id, user_id=user_id.strip(), days=days)
