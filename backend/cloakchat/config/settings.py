"""
Configuration Settings.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # App info
    app_name: str = "Cloak Chat"
    app_version: str = "1.0.0"
    debug: bool = True

    # CORS
    cors_origins: list[str] = ["*"]

    # Storage
    local_storage_path: str = "./data"
    state_file: str = "chat-next-web-store.json"

    # LLM gateway settings
    llm_api_key: Optional[str] = None
    llm_base_url: str = "https://api.openai.com/v1"
    gemini_base_url: Optional[str] = None  # falls back to llm_base_url
    claude_base_url: Optional[str] = None  # falls back to llm_base_url
    llm_timeout: float = 120.0

    # Summarization
    summarize_model: str = "gpt-3.5-turbo"
    gemini_summarize_model: str = "gemini-pro"
    available_models: list[str] = [
        "gpt-3.5-turbo",
        "gpt-4",
        "gpt-4-turbo-preview",
        "gemini-pro",
        "claude-3-haiku-20240307",
    ]
    enable_auto_generate_title: bool = True
    token_estimator: str = "heuristic"  # heuristic, tiktoken

    # Global default model config (new masks, migrations)
    default_model: str = "gpt-3.5-turbo"
    default_temperature: float = 0.5
    default_max_tokens: int = 4000
    default_history_message_count: int = 4
    default_compress_message_length_threshold: int = 1000
    default_send_memory: bool = True
    default_enable_inject_system_prompts: bool = True

    # Remote chat history service
    remote_base_url: str = "https://cloak.i.inc"
    remote_auth_token: Optional[str] = None
    remote_timeout: float = 30.0

    # Seconds a deleted session can be restored
    delete_undo_seconds: float = 5.0

    # Logging configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file_path: str = "./logs/cloakchat.log"
    log_file_enabled: bool = True
    log_console_enabled: bool = True
    log_json_format: bool = True  # JSON format for files, human-readable for console
    log_llm_calls: bool = True  # Log all LLM calls with token usage

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
