"""
서비스 팩토리 - 설정으로부터 저장소/서비스 생성 및 FastAPI 의존성 제공
"""
import logging
from typing import Dict, Optional, Tuple

from fastapi import Depends
from supabase import create_client

from infinitepay_webhook.core.config import Settings, get_settings
from infinitepay_webhook.core.interfaces import IPaymentStore
from infinitepay_webhook.core.responses import ConfigurationException
from infinitepay_webhook.database_helper import DatabaseHelper
from infinitepay_webhook.services.audit_logger import AuditLogger
from infinitepay_webhook.services.webhook_service import WebhookService

logger = logging.getLogger(__name__)


class ServiceFactory:
    """연결 정보별로 저장소와 감사 로거를 한 번만 만들어 재사용"""

    _stores: Dict[Tuple[str, str], IPaymentStore] = {}
    _audit_loggers: Dict[int, AuditLogger] = {}

    @classmethod
    def get_payment_store(cls, settings: Settings) -> IPaymentStore:
        """Supabase 저장소 조회 - 연결 설정이 없으면 ConfigurationException"""
        missing = settings.missing_store_settings()
        if missing:
            logger.error("[INFINITEPAY] missing configuration: %s", ", ".join(missing))
            raise ConfigurationException(missing)

        key = (settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
        store = cls._stores.get(key)
        if store is None:
            try:
                admin_client = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
            except Exception as e:
                # 잘못된 URL/키 형식 - 값은 로그에 남기지 않는다
                logger.error("[INFINITEPAY] Supabase client init failed: %s", e.__class__.__name__)
                raise ConfigurationException(invalid=["SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY"]) from e
            store = DatabaseHelper(admin_client, settings)
            cls._stores[key] = store
        return store

    @classmethod
    def get_audit_logger(cls, store: Optional[IPaymentStore], settings: Settings) -> AuditLogger:
        key = id(store)
        audit_logger = cls._audit_loggers.get(key)
        if audit_logger is None or audit_logger.store is not store:
            audit_logger = AuditLogger(store, settings.PAYMENT_PROVIDER)
            cls._audit_loggers[key] = audit_logger
        return audit_logger

    @classmethod
    def get_webhook_service(cls, store: IPaymentStore, settings: Settings) -> WebhookService:
        return WebhookService(store, settings, audit_logger=cls.get_audit_logger(store, settings))

    @classmethod
    def clear_cache(cls) -> None:
        """캐시된 인스턴스 정리 (테스트용)"""
        cls._stores.clear()
        cls._audit_loggers.clear()


# FastAPI 의존성 함수들
def get_payment_store(settings: Settings = Depends(get_settings)) -> IPaymentStore:
    return ServiceFactory.get_payment_store(settings)


def get_optional_payment_store(settings: Settings = Depends(get_settings)) -> Optional[IPaymentStore]:
    """설정이 없어도 실패하지 않는 저장소 조회 (handshake/진단용)"""
    try:
        return ServiceFactory.get_payment_store(settings)
    except ConfigurationException:
        return None


def get_webhook_service(
    settings: Settings = Depends(get_settings),
    store: IPaymentStore = Depends(get_payment_store),
) -> WebhookService:
    return ServiceFactory.get_webhook_service(store, settings)


def get_audit_logger(
    settings: Settings = Depends(get_settings),
    store: Optional[IPaymentStore] = Depends(get_optional_payment_store),
) -> AuditLogger:
    return ServiceFactory.get_audit_logger(store, settings)
