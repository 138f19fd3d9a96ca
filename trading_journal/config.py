from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Generative language API (Gemini REST)
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    ai_temperature: float = 0.8
    ai_max_output_tokens: int = 1000

    # Retry only applies to text generation, never to extraction or search
    ai_max_attempts: int = 2
    ai_retry_base_delay: float = 2.0

    # After a 429 / quota error, AI calls are suppressed for this long
    ai_quota_cooldown_hours: float = 24.0

    # Assistant persona and conversation window
    assistant_name: str = "Sydney"
    chat_history_window: int = 20

    # Web search (Serper)
    serper_api_key: str = ""
    serper_url: str = "https://google.serper.dev/search"
    search_num_results: int = 5
    search_trigger: str = "greeting"  # greeting | keyword

    # Market data providers
    newsapi_key: str = ""
    market_http_timeout: float = 10.0

    # App
    api_secret_key: str
    database_url: str = "sqlite+aiosqlite:///./journal.db"
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}
