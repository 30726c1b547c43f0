"""
전역 예외 처리 미들웨어

웹훅 공급자는 본문의 "error" 코드만 본다. 사람이 읽는 설명은 "message" 에 덧붙인다.
"""
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
import logging

from infinitepay_webhook.core.responses import BusinessException, ConfigurationException, error_ack

logger = logging.getLogger(__name__)

async def business_exception_handler(request: Request, exc: BusinessException):
    """비즈니스 예외 처리기 (5xx 는 공급자 재전송 대상)"""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log("[INFINITEPAY] %s %s -> %s: %s", request.method, request.url.path, exc.error_code, exc.message)

    content = error_ack(exc.error_code or "business_error")
    content["message"] = exc.message
    if isinstance(exc, ConfigurationException):
        # 값이 아닌 설정 이름만 노출
        content["missing"] = exc.missing
        if exc.invalid:
            content["invalid"] = exc.invalid
    return JSONResponse(status_code=exc.status_code, content=content)

async def http_exception_handler_custom(request: Request, exc: HTTPException):
    """HTTP 예외 처리기"""
    logger.warning("[INFINITEPAY] %s %s -> HTTP %s: %s", request.method, request.url.path, exc.status_code, exc.detail)

    content = error_ack("http_error")
    content["message"] = exc.detail
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))

async def general_exception_handler(request: Request, exc: Exception):
    """처리되지 않은 예외 - 상세 내용은 로그에만 남긴다"""
    logger.error("[INFINITEPAY] unhandled exception on %s %s: %s", request.method, request.url.path, exc, exc_info=True)

    return JSONResponse(status_code=500, content=error_ack("internal_error"))

def setup_exception_handlers(app):
    """예외 처리기 설정"""
    app.add_exception_handler(BusinessException, business_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler_custom)
    app.add_exception_handler(Exception, general_exception_handler)
