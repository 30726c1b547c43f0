"""
애플리케이션 설정 관리
"""
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import validator
from pydantic_settings import BaseSettings


_FILE_PATH = Path(__file__).resolve()


def _collect_env_files(file_path: Path) -> tuple[Path, ...]:
    """환경 파일 후보를 가까운 디렉터리부터 수집"""

    collected: list[Path] = []
    seen: set[Path] = set()

    for directory in file_path.parents:
        for name in (".env", ".env.local"):
            candidate = directory / name
            if candidate.exists() and candidate not in seen:
                collected.append(candidate)
                seen.add(candidate)

    return tuple(collected)


_ENV_FILES = _collect_env_files(_FILE_PATH)


def _load_dotenv_files() -> None:
    """.env 파일들을 순차적으로 로드 (실제 환경변수는 덮어쓰지 않음)"""

    for dotenv_path in _ENV_FILES:
        load_dotenv(dotenv_path, override=False)


_load_dotenv_files()


class Settings(BaseSettings):
    """애플리케이션 설정 (생성 후 변경 불가)"""

    # 서버 설정
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Supabase 설정 - 누락 시 요청 단위로 configuration_error 처리
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None
    STORE_TIMEOUT_SECONDS: float = 10.0

    # 결제 공급자 설정
    PAYMENT_PROVIDER: str = "infinitepay"
    CREDIT_DESCRIPTION: str = "infinitepay_webhook"

    # 테이블 이름
    WEBHOOK_LOG_TABLE: str = "payment_webhook_logs"
    PAYMENT_INTENTS_TABLE: str = "payment_intents"

    # pending intent 매칭
    INTENT_MATCH_WINDOW_MINUTES: int = 60
    INTENT_MATCH_LIMIT: int = 5

    # 페이로드 트리 스캔 한도
    SCAN_MAX_DEPTH: int = 6
    SCAN_MAX_BREADTH: int = 25
    SCAN_MAX_KEYS: int = 2000

    @validator("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY")
    def blank_to_none(cls, v):
        if v is None:
            return None
        v = v.strip()
        return v or None

    @validator("SUPABASE_URL")
    def strip_trailing_slash(cls, v):
        return v.rstrip("/") if v else v

    @validator("INTENT_MATCH_LIMIT", "SCAN_MAX_DEPTH", "SCAN_MAX_BREADTH", "SCAN_MAX_KEYS")
    def positive_limit(cls, v):
        if v < 1:
            raise ValueError("limit must be >= 1")
        return v

    def missing_store_settings(self) -> List[str]:
        """원격 저장소 연결에 필요한데 비어 있는 설정 이름 목록"""
        missing = []
        if not self.SUPABASE_URL:
            missing.append("SUPABASE_URL")
        if not self.SUPABASE_SERVICE_ROLE_KEY:
            missing.append("SUPABASE_SERVICE_ROLE_KEY")
        return missing

    class Config:
        env_file = tuple(str(path) for path in _ENV_FILES) if _ENV_FILES else None
        case_sensitive = True
        extra = "ignore"
        frozen = True


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """프로세스 시작 시 한 번 읽어 재사용하는 설정"""
    return Settings()
