"""
Supabase 기반 결제 저장소 헬퍼 (RPC 호출, 감사 로그, 결제 intent 조회/갱신)
"""

from typing import Dict, List, Optional, Any
from datetime import datetime, timezone
import asyncio
import logging

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from infinitepay_webhook.core.config import Settings
from infinitepay_webhook.core.interfaces import IPaymentStore
from infinitepay_webhook.core.responses import ExternalServiceException, UnknownColumnError

logger = logging.getLogger(__name__)

# PostgREST: 스키마 캐시에 없는 컬럼 / Postgres: undefined_column
UNKNOWN_COLUMN_CODES = {"PGRST204", "42703"}


def _is_unknown_column_error(exc: APIError) -> bool:
    code = getattr(exc, "code", None)
    if code in UNKNOWN_COLUMN_CODES:
        return True
    message = (getattr(exc, "message", None) or str(exc) or "").lower()
    return "column" in message and ("could not find" in message or "does not exist" in message)


class DatabaseHelper(IPaymentStore):
    def __init__(self, admin_client: Client, settings: Settings):
        self.admin_client = admin_client
        self.settings = settings

    @staticmethod
    def _isoformat(value: datetime) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()

    async def _execute(self, query: Any, action: str) -> Any:
        """동기 supabase 쿼리를 워커 스레드에서 실행 (이벤트 루프를 막지 않음)

        APIError 는 호출 측이 코드별로 처리하도록 그대로 던지고, 그 외 오류는 ExternalServiceException 으로 감싼다.
        """
        try:
            return await asyncio.to_thread(query.execute)
        except APIError:
            raise
        except Exception as e:
            logger.error("[INFINITEPAY] Supabase %s failed: %s", action, e)
            raise ExternalServiceException("supabase", f"{action} 실패: {e}") from e

    async def _rpc(self, fn_name: str, params: Dict[str, Any]) -> Any:
        """Supabase RPC 호출 - 실패 시 ExternalServiceException"""
        try:
            result = await self._execute(self.admin_client.rpc(fn_name, params), f"RPC {fn_name}")
        except APIError as e:
            logger.error("[INFINITEPAY] Supabase RPC %s failed: code=%s message=%s", fn_name, e.code, e.message)
            raise ExternalServiceException("supabase", f"RPC {fn_name} 실패: {e.message}", code=e.code) from e
        return result.data if hasattr(result, "data") else None

    async def apply_credit(
        self,
        user_id: str,
        days: int,
        amount_cents: int,
        provider: str,
        provider_payment_id: str,
        description: str,
        raw_event: Any,
    ) -> None:
        """이용일 크레딧 적용 RPC"""
        await self._rpc(
            "service_apply_payment_credits",
            {
                "p_user_id": user_id,
                "p_days": days,
                "p_amount_cents": amount_cents or 0,
                "p_description": description,
                "p_provider": provider,
                "p_provider_payment_id": provider_payment_id,
                "p_raw_event": raw_event,
            },
        )

    async def resolve_user_by_email(self, email: str) -> Any:
        """이메일 → 사용자 ID 조회 RPC (응답 형태 정규화는 호출 측 책임)"""
        return await self._rpc("service_get_user_id_by_email", {"p_email": email})

    async def insert_log(self, row: Dict[str, Any]) -> None:
        """웹훅 감사 로그 삽입 - 실패는 호출 측에서 처리하도록 그대로 전파"""
        try:
            await self._execute(self.admin_client.table(self.settings.WEBHOOK_LOG_TABLE).insert(row), "로그 기록")
        except APIError as e:
            if _is_unknown_column_error(e):
                raise UnknownColumnError(e.message, code=e.code) from e
            raise ExternalServiceException("supabase", f"로그 기록 실패: {e.message}", code=e.code) from e

    async def select_pending_intents(
        self,
        provider: str,
        status: str,
        amount_cents: int,
        since: datetime,
        limit: int,
    ) -> List[Dict[str, Any]]:
        """결제 intent 조회 (created_at 최신순)"""
        try:
            query = (
                self.admin_client.table(self.settings.PAYMENT_INTENTS_TABLE)
                .select("*")
                .eq("provider", provider)
                .eq("status", status)
                .eq("amount_cents", amount_cents)
                .gte("created_at", self._isoformat(since))
                .order("created_at", desc=True)
                .limit(limit)
            )
            result = await self._execute(query, "intent 조회")
        except APIError as e:
            raise ExternalServiceException("supabase", f"intent 조회 실패: {e.message}", code=e.code) from e
        return result.data or []

    async def patch_intent(
        self,
        intent_id: Any,
        expected_status: str,
        new_status: str,
        fields: Optional[Dict[str, Any]] = None,
    ) -> int:
        """status가 expected_status일 때만 갱신 - 경쟁에서 지면 0 반환"""
        update_data = dict(fields or {})
        update_data["status"] = new_status
        update_data.setdefault("updated_at", datetime.now(timezone.utc).isoformat())
        try:
            query = (
                self.admin_client.table(self.settings.PAYMENT_INTENTS_TABLE)
                .update(update_data)
                .eq("id", intent_id)
                .eq("status", expected_status)
            )
            result = await self._execute(query, "intent 갱신")
        except APIError as e:
            raise ExternalServiceException("supabase", f"intent 갱신 실패: {e.message}", code=e.code) from e
        return len(result.data or [])

    async def ping(self) -> Dict[str, Any]:
        """PostgREST 엔드포인트 도달 여부 확인"""
        url = f"{self.settings.SUPABASE_URL}/rest/v1/"
        key = self.settings.SUPABASE_SERVICE_ROLE_KEY or ""
        headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Accept": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.settings.STORE_TIMEOUT_SECONDS) as client:
                response = await client.get(url, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("[INFINITEPAY] store ping failed: %s", exc)
            return {"ok": False, "checked": True, "error": exc.__class__.__name__}

        return {
            "ok": response.status_code < 500,
            "checked": True,
            "status_code": response.status_code,
        }
