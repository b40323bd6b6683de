import os


class Settings:
    def __init__(self):
        self.app_name = os.getenv("APP_NAME", "PropertyHub Payments")
        self.api_version = os.getenv("API_VERSION", "1.0.0")
        self.environment = os.getenv("ENVIRONMENT", "development")
        self.secret_key = os.getenv("SECRET_KEY", "CHANGE_ME")
        self.SECRET_KEY = self.secret_key
        self.access_token_expire_minutes = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
        self.ACCESS_TOKEN_EXPIRE_MINUTES = self.access_token_expire_minutes
        self.database_url = os.getenv("DATABASE_URL", "sqlite:///./propertyhub.db")
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.default_currency = os.getenv("DEFAULT_CURRENCY", "GBP")
        # Gateway is treated as "not configured" when the secret key is empty
        self.stripe_secret_key = os.getenv("STRIPE_SECRET_KEY") or None
        self.stripe_webhook_secret = os.getenv("STRIPE_WEBHOOK_SECRET") or None
        self.recurring_lookback_hours = int(os.getenv("RECURRING_LOOKBACK_HOURS", "24"))


_settings_instance = None


def get_settings():
    """Return a singleton Settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
