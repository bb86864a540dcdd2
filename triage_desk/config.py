"""
Triage Desk - Configuration Management
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    """Application settings"""

    # FastAPI
    fastapi_env: str = "development"
    fastapi_host: str = "0.0.0.0"
    fastapi_port: int = 8000

    # LLM
    llm_provider: str = "gemini"  # gemini | openai
    google_api_key: str = ""
    gemini_model: str = "models/gemini-2.5-flash"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    llm_timeout_seconds: float = 60.0

    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: str = ""

    # Freshdesk
    freshdesk_domain: str = ""
    freshdesk_api_key: str = ""
    freshdesk_agent_id: str = ""

    # Batch scheduler
    batch_delay_seconds: float = 0.5
    schedule_enabled: bool = False
    schedule_times: str = "08:00,12:00,16:00,00:00"  # Comma-separated HH:MM
    schedule_timezone: str = "America/New_York"

    # Pipeline
    similar_limit: int = 3
    qa_enabled: bool = True

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def SCHEDULE_TIMES(self) -> List[str]:
        """Parsed list of wall-clock trigger times"""
        return [t.strip() for t in self.schedule_times.split(",") if t.strip()]

    @property
    def SUPABASE_ENABLED(self) -> bool:
        """Durable storage is only used when both URL and key are set"""
        return bool(self.supabase_url and (self.supabase_service_role_key or self.supabase_key))


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
