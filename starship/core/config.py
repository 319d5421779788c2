from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://starship:starship@db:5432/starship"
    APP_ENV: str = "development"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://myapp.com,https://api.myapp.com"
    CORS_ORIGINS: str = "*"

    # IANA zone used for every day / ISO-week boundary, e.g. "Asia/Shanghai".
    # Empty means the server's local zone.
    TIMEZONE: str = ""

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Attempts for a ledger / level write that lost a race to another request.
    WRITE_RETRIES: int = 3

    DEFAULT_SHIP_NAME: str = "探索者号"

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
