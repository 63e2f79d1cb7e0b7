from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    debug: bool = False
    sentry_dsn: str | None = None

    github_app_id: str = ""
    github_installation_id: str = ""
    github_app_private_key: str = ""
    github_app_private_key_path: str | None = None
    github_webhook_secret: str = "test_webhook_secret"
    github_api_url: str = "https://api.github.com"
    github_web_url: str = "https://github.com"
    github_request_timeout: float = 10.0

    check_organization_rulesets: bool = False
    rule_suite_time_period: str = "day"
    rule_suite_settle_seconds: float = 5.0
    rule_suite_poll_attempts: int = 3
    rule_suite_poll_interval_seconds: float = 5.0

    dedup_capacity: int = 1000
    dedup_evict_fraction: float = 0.1

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )


settings = Settings()
