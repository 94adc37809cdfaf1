"""Configuration management for the TradeLedger portfolio service"""

import os
import logging
from decimal import Decimal, InvalidOperation
from typing import List

logger = logging.getLogger(__name__)


class Config:
    """Application configuration"""

    # Environment detection
    # ENVIRONMENT takes absolute priority, then deployment heuristics
    ENVIRONMENT = os.getenv("ENVIRONMENT", "").lower().strip()

    if ENVIRONMENT:
        IS_PRODUCTION = (ENVIRONMENT == "production")
    else:
        IS_PRODUCTION = (
            bool(os.getenv("RAILWAY_PUBLIC_DOMAIN")) or  # Railway deployment has custom domains
            os.getenv("DEPLOYMENT") == "1"
        )

    CURRENT_ENVIRONMENT = "production" if IS_PRODUCTION else "development"

    # Branding
    BRAND = os.getenv("BRAND", "TradeLedger")
    PLATFORM_NAME = BRAND

    # Database configuration
    # Production requires DATABASE_URL (PostgreSQL); development falls back to a local SQLite file
    DATABASE_URL = os.getenv("DATABASE_URL")
    if DATABASE_URL:
        DATABASE_SOURCE = "PostgreSQL" if DATABASE_URL.startswith("postgres") else "Custom"
    elif IS_PRODUCTION:
        DATABASE_SOURCE = "NOT CONFIGURED"
    else:
        DATABASE_URL = "sqlite:///./tradeledger_dev.db"
        DATABASE_SOURCE = "SQLite (Development)"

    DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "7"))
    DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "15"))
    DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    DB_ECHO = os.getenv("DB_ECHO", "false").lower() == "true"

    # Ledger configuration with validation
    @staticmethod
    def _validate_decimal_setting(env_var: str, default: str, min_val: str = "0") -> Decimal:
        """Read a Decimal setting with lower-bound checking"""
        value_str = os.getenv(env_var, default)
        try:
            value = Decimal(value_str)
        except (InvalidOperation, TypeError) as e:
            logger.error(f"❌ Invalid {env_var} value '{value_str}': {e}. Using default {default}")
            return Decimal(default)

        if not value.is_finite() or value < Decimal(min_val):
            logger.error(f"❌ {env_var}={value} is below minimum {min_val}. Using default {default}")
            return Decimal(default)

        return value

    # Starting balance for wallets created on first login (matches the original server-side default)
    DEFAULT_WALLET_BALANCE = _validate_decimal_setting("DEFAULT_WALLET_BALANCE", "100000.00")
    DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "INR").upper()
    MIN_FUND_REQUEST_AMOUNT = _validate_decimal_setting("MIN_FUND_REQUEST_AMOUNT", "1")

    # Role seeding: comma separated emails promoted to admin at startup
    ADMIN_EMAILS: List[str] = [
        email.strip().lower()
        for email in os.getenv("ADMIN_EMAILS", "").split(",")
        if email.strip()
    ]

    # Short position P&L convention: "uniform" (current - buy for every position)
    # or "directional" (buy - current for shorts)
    SHORT_PNL_CONVENTION = os.getenv("SHORT_PNL_CONVENTION", "uniform").lower().strip()

    # Market data proxy
    MARKET_DATA_URL = os.getenv("MARKET_DATA_URL", "http://localhost:54321/functions/v1/cmc-proxy")
    MARKET_DATA_API_KEY = os.getenv("MARKET_DATA_API_KEY", "")
    MARKET_DATA_TIMEOUT = int(os.getenv("MARKET_DATA_TIMEOUT", "10"))
    MARKET_DATA_LIMIT = int(os.getenv("MARKET_DATA_LIMIT", "20"))

    # Server
    PORT = int(os.getenv("PORT", "5000"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    @staticmethod
    def log_environment_config():
        """Log current environment configuration for debugging"""
        logger.info("🔧 Environment Configuration:")
        logger.info(f"   Environment: {Config.CURRENT_ENVIRONMENT.upper()}")
        logger.info(f"   Is Production: {Config.IS_PRODUCTION}")

        if Config.DATABASE_SOURCE == "NOT CONFIGURED":
            logger.error(f"   ❌ Database: {Config.DATABASE_SOURCE}")
        else:
            logger.info(f"   Database: {Config.DATABASE_SOURCE}")

        logger.info(f"   Wallet defaults: {Config.DEFAULT_WALLET_BALANCE} {Config.DEFAULT_CURRENCY}")
        logger.info(f"   Seeded admin emails: {len(Config.ADMIN_EMAILS)}")
        logger.info(f"   Short P&L convention: {Config.SHORT_PNL_CONVENTION}")
        logger.info(f"   Market data proxy: {Config.MARKET_DATA_URL}")

    @staticmethod
    def validate_configuration():
        """Validate configuration and fail fast on settings the service cannot run without"""
        if not Config.DATABASE_URL:
            logger.critical("❌ DATABASE_URL is required in production")
            raise ValueError("DATABASE_URL environment variable is required")

        if Config.SHORT_PNL_CONVENTION not in ("uniform", "directional"):
            logger.critical(f"❌ Unknown SHORT_PNL_CONVENTION '{Config.SHORT_PNL_CONVENTION}'")
            raise ValueError("SHORT_PNL_CONVENTION must be 'uniform' or 'directional'")

        if Config.IS_PRODUCTION and not Config.ADMIN_EMAILS:
            logger.warning("⚠️ No ADMIN_EMAILS configured - admin panel will be unreachable until roles are seeded")

        return True
