import os
from typing import List, Optional

from pydantic import BaseModel


class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "development")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    gemini_api_key: Optional[str] = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
    gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    gemini_image_model: str = os.getenv("GEMINI_IMAGE_MODEL", "gemini-2.5-flash-image")
    model_timeout_seconds: float = float(os.getenv("MODEL_TIMEOUT_SECONDS", "30"))
    model_max_attempts: int = int(os.getenv("MODEL_MAX_ATTEMPTS", "2"))
    model_retry_backoff_seconds: float = float(os.getenv("MODEL_RETRY_BACKOFF_SECONDS", "1"))
    max_tool_rounds: int = int(os.getenv("MAX_TOOL_ROUNDS", "5"))
    history_max_turns: int = int(os.getenv("HISTORY_MAX_TURNS", "0"))
    default_language: str = os.getenv("DEFAULT_LANGUAGE", "en")
    demo_user_id: str = os.getenv("DEMO_USER_ID", "user_demo")
    storage_backend: str = os.getenv("STORAGE_BACKEND", "local")
    records_path: str = os.getenv("RECORDS_PATH", "data/zeina_records.json")
    supabase_url: Optional[str] = os.getenv("SUPABASE_URL")
    supabase_key: Optional[str] = os.getenv("SUPABASE_KEY")
    slot_conflict_buffer_minutes: int = int(os.getenv("SLOT_CONFLICT_BUFFER_MINUTES", "0"))
    meeting_link_template: Optional[str] = os.getenv(
        "MEETING_LINK_TEMPLATE", "https://meet.zeina.health/{appointment_id}"
    )
    expert_seed_review_count: int = int(os.getenv("EXPERT_SEED_REVIEW_COUNT", "25"))
    cors_origins: str = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")

    @property
    def cors_origin_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


settings = Settings()
