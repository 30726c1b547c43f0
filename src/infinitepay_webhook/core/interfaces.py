"""
외부 협력자 인터페이스 정의
"""
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List
from datetime import datetime


class IPaymentStore(ABC):
    """원격 계정/원장 저장소 인터페이스"""

    @abstractmethod
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
        """사용자에게 이용일 크레딧 적용 (provider_payment_id 기준 멱등은 저장소 책임)"""
        pass

    @abstractmethod
    async def resolve_user_by_email(self, email: str) -> Any:
        """이메일로 사용자 조회 - 원시 응답 반환 (id, [{user_id}], {user_id} 중 하나)"""
        pass

    @abstractmethod
    async def insert_log(self, row: Dict[str, Any]) -> None:
        """웹훅 감사 로그 행 삽입"""
        pass

    @abstractmethod
    async def select_pending_intents(
        self,
        provider: str,
        status: str,
        amount_cents: int,
        since: datetime,
        limit: int,
    ) -> List[Dict[str, Any]]:
        """조건에 맞는 결제 intent 목록 (최신순)"""
        pass

    @abstractmethod
    async def patch_intent(
        self,
        intent_id: Any,
        expected_status: str,
        new_status: str,
        fields: Optional[Dict[str, Any]] = None,
    ) -> int:
        """상태 조건부 intent 갱신 - 변경된 행 수 반환"""
        pass

    async def ping(self) -> Dict[str, Any]:
        """저장소 연결 상태 확인 (선택 구현)"""
        return {"ok": None, "checked": False}
