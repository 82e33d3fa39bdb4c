"""
Smart search configuration
"""
import os


class SearchConfig:
    """Configuration for the hybrid contact search"""

    # Coordinator
    DEBOUNCE_SECONDS = float(os.getenv("SEARCH_DEBOUNCE_SECONDS", "0.2"))

    # Remote semantic search endpoint
    REMOTE_SEARCH_URL = os.getenv("REMOTE_SEARCH_URL", "http://localhost:8000/api/search/smart")
    REMOTE_SEARCH_TIMEOUT = float(os.getenv("REMOTE_SEARCH_TIMEOUT", "0"))  # 0 disables the client timeout

    # LLM interpretation
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
    OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "500"))

    # Business context for the interpreter
    CRM_API_BASE_URL = os.getenv("CRM_API_BASE_URL", "http://localhost:3000")
    CONTEXT_REQUEST_TIMEOUT = int(os.getenv("CONTEXT_REQUEST_TIMEOUT", "10"))
    MAX_CONTEXT_DEALS = int(os.getenv("MAX_CONTEXT_DEALS", "5"))
    MAX_PROMPT_ORGANIZATIONS = int(os.getenv("MAX_PROMPT_ORGANIZATIONS", "100"))
    MAX_PROMPT_ITEMS = int(os.getenv("MAX_PROMPT_ITEMS", "50"))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def has_openai_key(cls) -> bool:
        """Whether a usable OpenAI key is configured"""
        return bool(cls.OPENAI_API_KEY) and cls.OPENAI_API_KEY != "sk-..."

    @classmethod
    def remote_timeout(cls):
        """Client timeout in seconds, or None when disabled"""
        return cls.REMOTE_SEARCH_TIMEOUT if cls.REMOTE_SEARCH_TIMEOUT > 0 else None
