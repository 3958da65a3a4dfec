from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # LLM: any OpenAI-compatible endpoint (OpenRouter by default)
    openai_api_key: str = ""
    openai_base_url: str = "https://openrouter.ai/api/v1"
    openai_model: str = "openai/gpt-4o-mini"
    openai_app_referer: str = "https://tripwise.dev"
    openai_app_title: str = "TripWise"

    # Anthropic fallback
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5-20250929"

    llm_timeout_seconds: float = 60.0

    # Google Places
    google_maps_api_key: str = ""
    places_base_url: str = "https://places.googleapis.com/v1"
    places_legacy_base_url: str = "https://maps.googleapis.com/maps/api/place"
    places_timeout_seconds: float = 15.0

    # Redis: shared place cache across sessions (empty disables it)
    redis_url: str = ""

    # Rotating log files; relative paths resolve against the working directory
    log_dir: str = "logs"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
