import os


# Extraction Configuration
class Config:
    # External providers, tried in this order
    PROVIDER_ORDER = [p.strip() for p in os.environ.get("PROVIDER_ORDER", "groq,openrouter,ollama").split(",") if p.strip()]
    PROVIDER_TIMEOUT = float(os.environ.get("PROVIDER_TIMEOUT", "60"))

    GROQ_API_KEY = os.environ.get("GROQ_API_KEY")
    GROQ_BASE_URL = "https://api.groq.com/openai/v1"
    GROQ_MODEL = os.environ.get("GROQ_MODEL", "llama-3.1-8b-instant")

    OPENROUTER_API_KEY = os.environ.get("OPENROUTER_API_KEY")
    OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
    OPENROUTER_MODEL = os.environ.get("OPENROUTER_MODEL", "meta-llama/llama-3.1-8b-instruct")

    OLLAMA_BASE_URL = os.environ.get("OLLAMA_BASE_URL", "http://localhost:11434")
    OLLAMA_MODEL = os.environ.get("OLLAMA_MODEL", "llama3")

    # Prompt sizing
    MAX_PROMPT_CHARS = int(os.environ.get("MAX_PROMPT_CHARS", "6000"))
    CATEGORIZE_BATCH_SIZE = int(os.environ.get("CATEGORIZE_BATCH_SIZE", "40"))

    # Table reconstruction
    MIN_TABLE_ROW_LENGTH = 10

    # Confidence scores
    RULE_CONFIDENCE = 70
    SERVICE_CONFIDENCE = 85
    TABULAR_CONFIDENCE = 90

    # Uploads
    MAX_UPLOAD_MB = int(os.environ.get("MAX_UPLOAD_MB", "10"))

    PDF_MEDIA_TYPES = {"application/pdf"}
    TEXT_MEDIA_TYPES = {"text/plain"}
    CSV_MEDIA_TYPES = {"text/csv"}
    SPREADSHEET_MEDIA_TYPES = {
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-excel",
    }
    ALLOWED_MEDIA_TYPES = PDF_MEDIA_TYPES | TEXT_MEDIA_TYPES | CSV_MEDIA_TYPES | SPREADSHEET_MEDIA_TYPES
