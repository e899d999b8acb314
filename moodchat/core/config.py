from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite:///./moodchat.db"
    APP_ENV: str = "development"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://myapp.com,https://api.myapp.com"
    CORS_ORIGINS: str = "*"

    # Quiet period before a session's latest draft is written to the store.
    SESSION_FLUSH_WINDOW_SECONDS: float = 30 * 60

    # "heuristic" (keyword rules) or "remote" (HTTP model endpoint)
    MOOD_SCORER: str = "heuristic"
    MOOD_SCORER_URL: str = ""
    MOOD_SCORER_TIMEOUT_SECONDS: float = 10.0

    # IANA zone used to bucket sessions into calendar days.
    # Empty means the server's local zone.
    CALENDAR_TIMEZONE: str = ""

    NEUTRAL_MOOD_SCORE: int = 50
    INITIAL_SESSION_SUMMARY: str = "Conversation just started."

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
