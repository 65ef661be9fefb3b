from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import List, Union

class Settings(BaseSettings):
    # Database Configuration - reference vocabulary (ingredients, units)
    DATABASE_URL: str = "sqlite:///./chef.db"

    # Inference service (OpenAI-compatible chat completions API)
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = ""  # Empty means the SDK default endpoint
    LLM_MODEL: str = "gpt-4o-mini"
    LLM_MAX_TOKENS: int = 4096
    LLM_TIMEOUT: float = 90.0

    # Maximum characters of page text sent to the inference service
    LLM_TEXT_CHAR_LIMIT: int = 15000

    # Normalize "name amount" lines from structured extractors through the LLM
    LLM_NORMALIZE_INGREDIENTS: bool = True

    # Outbound HTTP
    PAGE_FETCH_TIMEOUT: float = 20.0
    IMAGE_DOWNLOAD_TIMEOUT: float = 15.0
    USER_AGENT: str = "Mozilla/5.0 (compatible; ChefApp/1.0)"

    # Downloaded images
    MEDIA_DIR: str = "media"
    MEDIA_URL_PREFIX: str = "/media"

    # CORS Configuration
    ALLOWED_ORIGINS: Union[List[str], str] = []

    # Rate Limiting Configuration
    RATE_LIMIT_ENABLED: bool = True
    DEFAULT_RATE_LIMIT: str = "100/minute"
    PARSING_RATE_LIMIT: str = "10/minute"

    # Request size limit (in bytes); image parsing posts base64 payloads
    MAX_REQUEST_SIZE: int = 20 * 1024 * 1024  # 20MB

    # Logging
    LOG_LEVEL: str = "INFO"

    @field_validator('ALLOWED_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    class Config:
        env_file = ".env"
        extra = "ignore"  # Ignore extra environment variables

settings = Settings()
