from pydantic_settings import BaseSettings
from pydantic import AnyUrl
from functools import lru_cache


class Settings(BaseSettings):
    # core
    ENV: str = "dev"
    API_PREFIX: str = "/api"
    APP_URL: str = "http://localhost:3000"

    # database & redis
    DATABASE_URL: AnyUrl
    # Keep this as a plain string so redis:// URLs are always accepted
    REDIS_URL: str

    # external APIs
    ANTHROPIC_API_KEY: str | None = None
    OPENAI_API_KEY: str | None = None
    TAVILY_API_KEY: str | None = None
    STRIPE_SECRET_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None
    TURNSTILE_SECRET: str | None = None
    TURNSTILE_VERIFY_URL: str = "https://challenges.cloudflare.com/turnstile/v0/siteverify"

    # auth / security
    # HMAC key for audit tokens and session cookies; at least 32 characters
    SESSION_SECRET: str | None = None
    SESSION_MAX_AGE_DAYS: int = 30
    CRON_SECRET: str | None = None
    FRONTEND_ORIGIN: str | None = None

    # llm
    STRATEGY_MODEL: str = "claude-opus-4-5-20251101"
    STRATEGY_MAX_TOKENS: int = 12000
    FORMATTER_MODEL: str = "claude-sonnet-4-20250514"
    FORMATTER_MAX_TOKENS: int = 4000
    FORMATTER_TIMEOUT_SECONDS: int = 60
    FREE_TOOL_MODEL: str = "gpt-4.1-mini"
    # Hard cap on concurrent LLM calls per process
    LLM_MAX_CONCURRENCY: int = 4

    # research
    SEARCH_TIMEOUT_SECONDS: int = 15
    SEARCH_MAX_RESULTS: int = 7
    REDDIT_MAX_RESULTS: int = 10
    SEARCH_CACHE_TTL_SECONDS: int = 60 * 60 * 6

    # free tools
    FREE_TOOL_IP_LIMIT: int = 5
    FREE_TOOL_IP_WINDOW_SECONDS: int = 60 * 60 * 24

    # runs
    MAX_FREE_REFINEMENTS: int = 2
    MIN_CONTEXT_LENGTH: int = 10
    MAX_CONTEXT_LENGTH: int = 10000
    FEEDBACK_EMAIL_DELAY_HOURS: int = 48

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    return Settings()
