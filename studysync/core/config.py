from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Gemini generateContent endpoint
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash-preview-09-2025"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"

    GENERATION_MAX_ATTEMPTS: int = 5
    GENERATION_INITIAL_DELAY_SECONDS: float = 1.0
    GENERATION_TIMEOUT_SECONDS: float = 60.0

    AUTO_GENERATE_SUMMARIES: bool = True
    SUMMARY_CONTENT_LIMIT: int = 4000
    QUIZ_QUESTION_COUNT: int = 5
    DECK_CARD_COUNT: int = 6

    class Config:
        env_file = ".env"

settings = Settings()
