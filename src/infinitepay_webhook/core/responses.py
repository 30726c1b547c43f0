"""
공통 응답 모델 및 예외 클래스
"""
from typing import Generic, TypeVar, Optional, Any, Dict, Iterable
from pydantic import BaseModel
import logging

logger = logging.getLogger(__name__)

T = TypeVar('T')

class APIResponse(BaseModel, Generic[T]):
    """표준 API 응답 모델 (웹훅 ack 이외의 엔드포인트용)"""
    status: str  # "success" or "error"
    data: Optional[T] = None
    message: Optional[str] = None
    error_code: Optional[str] = None

# 커스텀 예외 클래스들
class BusinessException(Exception):
    """비즈니스 로직 예외"""
    def __init__(self, message: str, error_code: str = None, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)

class ConfigurationException(BusinessException):
    """필수 연결 설정 누락/형식 오류 - 요청 단위 치명적 오류"""
    def __init__(self, missing: Iterable[str] = (), invalid: Iterable[str] = ()):
        self.missing = list(missing)
        self.invalid = list(invalid)
        if self.missing:
            msg = f"필수 설정이 누락되었습니다: {', '.join(self.missing)}"
        elif self.invalid:
            msg = f"설정 값이 올바르지 않습니다: {', '.join(self.invalid)}"
        else:
            msg = "필수 설정이 누락되었습니다"
        super().__init__(msg, "configuration_error", 500)

class ExternalServiceException(BusinessException):
    """외부 서비스 호출 예외"""
    def __init__(self, service_name: str, message: str = None, code: Optional[str] = None):
        msg = message or f"{service_name} 서비스 호출에 실패했습니다"
        super().__init__(msg, "external_service_error", 502)
        self.service_name = service_name
        self.code = code

class UnknownColumnError(ExternalServiceException):
    """로그 테이블에 없는 컬럼으로 insert 시도"""
    def __init__(self, message: str = None, code: Optional[str] = None):
        super().__init__("supabase", message or "알 수 없는 컬럼입니다", code=code)

class CreditApplicationError(BusinessException):
    """크레딧 적용 실패 - 공급자 재전송을 위해 500으로 노출"""
    def __init__(self, message: str = "크레딧 적용에 실패했습니다", provider_payment_id: Optional[str] = None):
        super().__init__(message, "credit_application_failed", 500)
        self.provider_payment_id = provider_payment_id

# 응답 헬퍼 함수들
def success_response(data: Any = None, message: str = "성공") -> APIResponse:
    """성공 응답 생성"""
    return APIResponse(status="success", data=data, message=message)

def error_response(
    message: str = "오류가 발생했습니다",
    error_code: str = None,
    data: Any = None
) -> APIResponse:
    """오류 응답 생성"""
    return APIResponse(
        status="error",
        message=message,
        error_code=error_code,
        data=data
    )

# 웹훅 ack 본문 - 공급자가 기대하는 고정 형태
def received_ack() -> Dict[str, Any]:
    return {"received": True}

def skipped_ack() -> Dict[str, Any]:
    return {"received": True, "skipped": True}

def applied_ack() -> Dict[str, Any]:
    return {"success": True}

def error_ack(error_code: str) -> Dict[str, Any]:
    return {"error": error_code}
