from enum import Enum


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

class OPENROUTER_LLM_MODELS(str, Enum):
    # OpenAI models
    GPT_4O = "openai/gpt-4o"
    GPT_4O_MINI = "openai/gpt-4o-mini"

    # Anthropic Claude models
    ANTHROPIC_SONNET_45 = "anthropic/claude-4.5-sonnet"
    ANTHROPIC_HAIKU_45 = "anthropic/claude-haiku-4.5"

    # Google Gemini models
    GEMINI_3_FLASH_PREVIEW = "google/gemini-3-flash-preview"
    GEMINI_3_PRO_PREVIEW = "google/gemini-3-pro-preview"

OPEN_ROUTER_API_URL = "https://openrouter.ai/api/v1"

# -------------------------
# Workflow Constants
# -------------------------

# Queries below this translator confidence are sent to experimentation
# before execution. Fixed policy value, not tuned per deployment.
CONFIDENCE_THRESHOLD = 70

# HandleError reports exhaustion once retry_count goes above this value
MAX_RETRY_COUNT = 2

# Interpretation answers are cut to this length in progress events
PROGRESS_ANSWER_PREVIEW_CHARS = 200

# Longest the server waits for undelivered progress events at shutdown
SHUTDOWN_DRAIN_TIMEOUT_SECONDS = 5.0
