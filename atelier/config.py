import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()


class Config:
    DATABASE_URL = os.getenv("ATELIER_DATABASE_URL", "sqlite+aiosqlite:///./atelier.db")

    RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID", "")
    RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET", "")
    GATEWAY_BASE_URL = os.getenv("ATELIER_GATEWAY_BASE_URL", "https://api.razorpay.com/v1")
    GATEWAY_TIMEOUT_SECONDS = float(os.getenv("ATELIER_GATEWAY_TIMEOUT_SECONDS", 10))
    CONFIRM_CAPTURED_AMOUNT = os.getenv("ATELIER_CONFIRM_CAPTURED_AMOUNT", "false").lower() == "true"

    CURRENCY = os.getenv("ATELIER_CURRENCY", "INR")
    GST_PERCENT = Decimal(os.getenv("ATELIER_GST_PERCENT", "18"))
    ADVANCE_PERCENT = Decimal(os.getenv("ATELIER_ADVANCE_PERCENT", "30"))
    PENDING_TTL_MINUTES = int(os.getenv("ATELIER_PENDING_TTL_MINUTES", 30))

    CATALOG_TIMEOUT_SECONDS = float(os.getenv("ATELIER_CATALOG_TIMEOUT_SECONDS", 1.5))
    CATALOG_CACHE_SIZE = int(os.getenv("ATELIER_CATALOG_CACHE_SIZE", 1000))
    NOTIFY_TIMEOUT_SECONDS = float(os.getenv("ATELIER_NOTIFY_TIMEOUT_SECONDS", 2))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.getenv("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")


config = Config()
