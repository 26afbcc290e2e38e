from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Identity provider (Supabase GoTrue)
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    identity_timeout_seconds: float = 10.0

    # App
    app_version: str = "0.1.0"
    docs_url: str = "https://docs.walletpilot.xyz"
    admin_secret: str = ""

    # Database
    database_path: str = "./data/walletpilot.db"
    store_timeout_seconds: float = 5.0

    # Logging
    log_level: str = "info"

    # Rate limiting
    rate_limit_per_minute: int = 100

    # CORS
    cors_origins: str = (
        "http://localhost:3000,http://localhost:5173,"
        "https://walletpilot.xyz,https://app.walletpilot.xyz"
    )

    # Waitlist backend: "memory" (default) or "redis"
    waitlist_backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def identity_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_role_key)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
