"""Core 패키지 초기화 (경량화)

모듈 간 순환 의존을 피하기 위해 설정과 응답/예외 심볼만 노출합니다.
"""
from .config import Settings, get_settings
from .responses import (
    APIResponse, success_response, error_response,
    BusinessException, ConfigurationException,
    ExternalServiceException, UnknownColumnError, CreditApplicationError,
)

__all__ = [
    'Settings',
    'get_settings',
    'APIResponse',
    'success_response',
    'error_response',
    'BusinessException',
    'ConfigurationException',
    'ExternalServiceException',
    'UnknownColumnError',
    'CreditApplicationError',
]
