from decimal import Decimal
from typing import List, Optional
from urllib.parse import quote_plus

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GradeTierSetting(BaseModel):
    """등급 설정 항목 (환경변수 JSON으로 재정의 가능)"""

    level: str
    min_amount: int = Field(..., description="등급 진입 누적 구매액")
    earn_rate: Decimal = Field(..., description="적립률 (0.01 = 1%)")


def _default_grade_tiers() -> List[GradeTierSetting]:
    return [
        GradeTierSetting(level="GREEN", min_amount=0, earn_rate=Decimal("0.01")),
        GradeTierSetting(level="ORANGE", min_amount=100_000, earn_rate=Decimal("0.02")),
        GradeTierSetting(level="RED", min_amount=300_000, earn_rate=Decimal("0.03")),
        GradeTierSetting(level="BLACK", min_amount=500_000, earn_rate=Decimal("0.04")),
        GradeTierSetting(level="VIP", min_amount=1_000_000, earn_rate=Decimal("0.05")),
    ]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file="shopapi/.env",
        env_file_encoding="utf-8",
        extra="allow",
    )
    # Application
    APP_NAME: str = "Shop API"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USERNAME: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DATABASE: str = "shop"
    POSTGRES_SCHEMA: str = "public"

    # 설정 시 POSTGRES_* 값보다 우선
    DATABASE_URL: Optional[str] = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    @property
    def database_url(self) -> str:
        """Construct database URL from individual components"""
        if self.DATABASE_URL:
            return self.DATABASE_URL

        # URL encode the password to handle special characters
        encoded_password = quote_plus(self.POSTGRES_PASSWORD)
        return f"postgresql+psycopg2://{self.POSTGRES_USERNAME}:{encoded_password}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DATABASE}"

    # Security
    SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Loyalty
    GRADE_TIERS: List[GradeTierSetting] = Field(default_factory=_default_grade_tiers)
    LEDGER_PAGE_MAX: int = 100  # 포인트 내역 조회 최대 페이지 크기

    @field_validator("LOG_LEVEL")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()


settings = Settings()
