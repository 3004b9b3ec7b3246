import os
from dotenv import load_dotenv

load_dotenv()

# OpenAI collaborator (field mapping + vision OCR)
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")
OPENAI_MAPPING_MODEL = os.environ.get("OPENAI_MAPPING_MODEL", "gpt-3.5-turbo")
OPENAI_VISION_MODEL = os.environ.get("OPENAI_VISION_MODEL", "gpt-4o")
OPENAI_TIMEOUT_SECONDS = int(os.environ.get("OPENAI_TIMEOUT_SECONDS", "60"))

# AI field mapping
USE_AI_MAPPING = os.environ.get("USE_AI_MAPPING", "true").lower() in ("1", "true", "yes")
AI_MAPPING_CONFIDENCE_THRESHOLD = float(os.environ.get("AI_MAPPING_CONFIDENCE_THRESHOLD", "0.7"))
AI_MAPPING_CACHE_TTL_SECONDS = int(os.environ.get("AI_MAPPING_CACHE_TTL_SECONDS", str(7 * 24 * 60 * 60)))  # 7 days

# Uploads
MAX_UPLOAD_SIZE_MB = int(os.environ.get("MAX_UPLOAD_SIZE_MB", "50"))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
