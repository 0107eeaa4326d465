from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://trace:trace@db:5432/trace"
    APP_ENV: str = "development"
    SECRET_KEY: str = "changeme-secret-key"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://myapp.com,https://api.myapp.com"
    CORS_ORIGINS: str = "*"

    # Per-statement limit on Postgres, in milliseconds. A read that runs
    # longer raises OperationalError, which the engine treats as that
    # analyzer being unavailable. 0 disables the limit.
    DB_STATEMENT_TIMEOUT_MS: int = 2000

    LOG_LEVEL: str = "INFO"

    # Where audit records go: "log" (stderr via loguru), "database"
    # (audit_events table) or "both".
    AUDIT_SINK: str = "log"

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def audit_sinks(self) -> set[str]:
        raw = self.AUDIT_SINK.strip().lower()
        if raw == "both":
            return {"log", "database"}
        return {s.strip() for s in raw.split(",") if s.strip()}


settings = Settings()
