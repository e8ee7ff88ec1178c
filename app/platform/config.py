from pathlib import Path
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── App ─────────────────────────────────────
    APP_NAME: str = "WCAG Risk Scanner"
    ENVIRONMENT: Literal["local", "test", "staging", "production"] = "local"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # ── Crawl bounds ────────────────────────────
    SCAN_MAX_PAGES: int = 50
    PAGE_LOAD_TIMEOUT_SECONDS: float = 15.0
    PAGE_RETRY_COUNT: int = 2
    PAGE_RETRY_BASE_DELAY_SECONDS: float = 0.5
    SCAN_TIMEOUT_SECONDS: float = 45.0  # advisory, overruns are only logged
    CHROMEDRIVER_PATH: Optional[str] = None
    RULE_CHECKERS: str = "axe,markup"

    # ── Queue ───────────────────────────────────
    # No broker means scans run inline in the API process
    CELERY_BROKER_URL: Optional[str] = None
    CELERY_RESULT_BACKEND: Optional[str] = None
    CELERY_TASK_SERIALIZER: str = "json"
    CELERY_RESULT_SERIALIZER: str = "json"
    CELERY_ACCEPT_CONTENT: str = "json"
    CELERY_TASK_TIME_LIMIT: int = 1800
    QUEUE_PUBLISH_RETRIES: int = 2
    QUEUE_RETRY_DELAY_SECONDS: float = 5.0

    # Shared scan records + rate limiting
    REDIS_URL: Optional[str] = None

    # ── AI interpretation ───────────────────────
    OPENROUTER_API_KEY: Optional[str] = None
    AI_BASE_URL: str = "https://openrouter.ai/api/v1"
    AI_MODEL: str = "openai/gpt-4.1-mini"
    AI_MAX_TOKENS: int = 1024
    AI_TIMEOUT_SECONDS: float = 30.0
    AI_MAX_RETRIES: int = 3
    AI_CONCURRENCY: int = 4

    # ── Evidence storage ────────────────────────
    S3_ENDPOINT: Optional[str] = None
    S3_REGION: Optional[str] = None
    S3_ACCESS_KEY_ID: Optional[str] = None
    S3_SECRET_ACCESS_KEY: Optional[str] = None
    S3_BUCKET: Optional[str] = None
    EVIDENCE_LOCAL_DIR: Optional[str] = None

    # ── Database ────────────────────────────────
    DATABASE_URL: Optional[str] = None
    DB_CIRCUIT_COOLDOWN_SECONDS: float = 30.0

    # ── HTTP boundary ───────────────────────────
    RATE_LIMIT_MAX: int = 60
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    RATE_LIMIT_ALLOW_LIST: str = "127.0.0.1"
    FORCE_IN_MEMORY_RATE_LIMITER: bool = False
    ALLOWED_ORIGINS: str = "*"

    class Config:
        env_file = str(Path(__file__).parent.parent.parent / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @property
    def s3_configured(self) -> bool:
        return all(
            [
                self.S3_BUCKET,
                self.S3_REGION,
                self.S3_ENDPOINT,
                self.S3_ACCESS_KEY_ID,
                self.S3_SECRET_ACCESS_KEY,
            ]
        )

    @property
    def rule_checker_names(self) -> List[str]:
        return [name.strip().lower() for name in self.RULE_CHECKERS.split(",") if name.strip()]

    @property
    def rate_limit_allow_list(self) -> List[str]:
        return [ip.strip() for ip in self.RATE_LIMIT_ALLOW_LIST.split(",") if ip.strip()]

    @property
    def allowed_origins(self) -> List[str]:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]


settings = Settings()

