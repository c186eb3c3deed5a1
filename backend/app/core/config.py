from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "contract-emulator"
    DEBUG: bool = False
    APP_DATABASE_DSN: str = "sqlite://"

    # CORS
    CORS_ORIGINS: str = "*"

    # Webhook delivery
    WEBHOOK_SECRET: str = "test-secret"
    WEBHOOK_TARGETS: str = ""  # comma-separated list of URLs
    WEBHOOK_DEFAULT_PATH: str = ""  # appended to targets registered without a path
    WEBHOOK_MAX_RETRIES: int = 2
    WEBHOOK_RETRY_BACKOFF_SECONDS: float = 0.5
    WEBHOOK_TIMEOUT_SECONDS: float = 10.0
    ENVIRONMENT_TYPE: str = "SANDBOX"

    # Alerts
    ALERT_CUSTOMER_BALANCE_DEPLETED: str = ""
    ALERT_CONFIG_JSON: str = ""  # {"alerts": {"customerBalanceDepleted": "..."}}

    # Dashboards
    DASHBOARD_BASE_URL: str = "http://localhost:3000"

    version: str = "0.1.0"

    @property
    def webhook_targets(self) -> list[str]:
        return [t.strip() for t in self.WEBHOOK_TARGETS.split(",") if t.strip()]


settings = Settings()
