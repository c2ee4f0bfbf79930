# jobboard/core/config.py
from typing import Optional
from pydantic import AnyUrl
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # App
    APP_ENV: str = "development"
    SECRET_KEY: str = "change-me"  # override in .env / secrets
    LOG_LEVEL: str = "INFO"
    # Frontend origin: used for CORS and for links inside e-mails
    HOST: str = "http://localhost:3000"
    ALLOWED_ORIGINS: str = "*"

    # Tokens
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    VERIFICATION_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    MIN_PASSWORD_LENGTH: int = 8

    # MongoDB
    MONGODB_URI: str = "mongodb://localhost:27017/jobboard"
    MONGODB_DB: str = "jobboard"

    # Redis (mail outbox stream)
    REDIS_URL: str = "redis://localhost:6379/0"

    # Mail: 'smtp' sends inline, 'queue' pushes to the Redis outbox, 'console' only logs
    MAIL_BACKEND: str = "smtp"
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    SMTP_TIMEOUT_SEC: int = 15
    MAIL_FROM: Optional[str] = None
    MAIL_FROM_NAME: str = "LinkIt"

    # Mail worker tuning
    WORKER_MAX_RETRIES: int = 5
    WORKER_CLAIM_IDLE_MS: int = 30_000
    WORKER_READ_BLOCK_MS: int = 5000

    # Payments (Razorpay)
    RAZORPAY_KEY_ID: Optional[str] = None
    RAZORPAY_KEY_SECRET: Optional[str] = None
    RAZORPAY_API_URL: str = "https://api.razorpay.com/v1"
    PAYMENT_CURRENCY: str = "INR"
    PAYMENT_TIMEOUT_SEC: int = 20
    PAYMENT_RETRIES: int = 2
    PAYMENT_BACKOFF_FACTOR: float = 0.5

    # S3 / R2 storage for uploads
    S3_PROVIDER: str = "cloudflare"
    S3_BUCKET: Optional[str] = None
    S3_ENDPOINT: Optional[AnyUrl] = None
    S3_REGION: Optional[str] = None
    S3_ACCESS_KEY: Optional[str] = None
    S3_SECRET_KEY: Optional[str] = None

    # MinIO dev fallback
    MINIO_ENDPOINT: Optional[str] = None
    MINIO_ACCESS_KEY: Optional[str] = None
    MINIO_SECRET_KEY: Optional[str] = None

    # Local filesystem fallback when no S3 credentials are configured
    LOCAL_UPLOAD_DIR: str = "public"
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024

    # Pydantic v2 settings: read from .env file
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

# single shared settings instance
settings = Settings()
