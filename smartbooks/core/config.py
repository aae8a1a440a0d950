from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # App settings
    PROJECT_NAME: str = "SmartBooks AI"
    API_PREFIX: str = "/api"
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")
    CORS_ORIGINS: List[str] = Field(
        default=[
            "http://localhost:3000",
            "http://localhost:5173",
            "http://localhost:8000",
        ]
    )

    # DynamoDB
    DYNAMO_REGION: str = Field(default="eu-west-1")
    DYNAMO_USERS_TABLE: str = Field(default="smartbooks-users", alias="DYNAMO_TABLE_USERS")
    DYNAMO_TRANSACTIONS_TABLE: str = Field(default="smartbooks-transactions", alias="DYNAMO_TABLE_TRANSACTIONS")
    DYNAMO_RECEIPTS_TABLE: str = Field(default="smartbooks-receipts", alias="DYNAMO_TABLE_RECEIPTS")

    # AWS S3 (receipt images)
    S3_BUCKET_NAME: str = Field(default="smartbooks-receipts")
    S3_REGION: str = Field(default="eu-west-1")

    # JWT Authentication
    JWT_SECRET_KEY: str = Field(default="change-me-in-production", alias="JWT_SECRET")
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days

    # Display
    CURRENCY: str = "KES"

    # Insight rule thresholds (percentages)
    INSIGHT_RISING_EXPENSES_PCT: float = 15.0
    INSIGHT_FALLING_EXPENSES_PCT: float = -10.0
    INSIGHT_CATEGORY_SHARE_PCT: float = 40.0
    INSIGHT_SAVINGS_RATE_PCT: float = 20.0
    INSIGHT_WEEK_WINDOW: int = 7
    INSIGHT_MAX_RESULTS: int = 3

    # Receipt extraction
    RECEIPT_EXTRACTOR: str = Field(default="textract")  # "textract" or "canned"
    TEXTRACT_REGION: str = Field(default="eu-west-1")
    RECEIPT_MAX_BYTES: int = 10 * 1024 * 1024
    RECEIPT_ALLOWED_TYPES: List[str] = Field(
        default=["image/jpeg", "image/png", "application/pdf"]
    )


settings = Settings()
