import os
import logging
from dotenv import load_dotenv

load_dotenv()

class Config:
    # JWT signing secret (REQUIRED in production)
    JWT_SECRET = os.getenv("JWT_SECRET")
    if not JWT_SECRET:
        JWT_SECRET = "dev-secret-change-me"
        logging.warning("JWT_SECRET is not set! Using an insecure development secret.")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_EXPIRES_HOURS = int(os.getenv("JWT_EXPIRES_HOURS", "24"))

    # Database Configuration
    DB_USER = os.getenv("DB_USER", "postgres")
    DB_PASS = os.getenv("DB_PASS", "postgres")
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME", "casamia")

    @property
    def DATABASE_URL(self):
        # Prefer DATABASE_URL env var if set (for SQLite support)
        url = os.getenv("DATABASE_URL")
        if url:
            return url

        # Build PostgreSQL URL
        return f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASS}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    # HTTP server
    HOST = os.getenv("HOST", "0.0.0.0")
    PORT = int(os.getenv("PORT", "5000"))

    # SMTP (OPTIONAL - emails are skipped when not configured)
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USER = os.getenv("SMTP_USER")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() in ("1", "true", "yes")
    EMAIL_FROM = os.getenv("EMAIL_FROM", "Casamia Apartment <no-reply@casamia.local>")

    # Scheduler: daily jobs run at this time, the month-end sweep on the last day
    SCHEDULER_HOUR = int(os.getenv("SCHEDULER_HOUR", "23"))
    SCHEDULER_MINUTE = int(os.getenv("SCHEDULER_MINUTE", "59"))
    SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "true").lower() in ("1", "true", "yes")

    # Billing defaults
    BILL_DUE_DAYS = int(os.getenv("BILL_DUE_DAYS", "15"))
    LEASE_WARNING_DAYS = int(os.getenv("LEASE_WARNING_DAYS", "10"))

config = Config()

# Log configuration on startup
logging.info(f"Database: {config.DATABASE_URL.split('@')[1] if '@' in config.DATABASE_URL else 'SQLite'}")
logging.info(f"SMTP: {'enabled' if config.SMTP_HOST else 'disabled (emails will be skipped)'}")
