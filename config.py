import os
from dotenv import load_dotenv

# Load .env from the working directory before reading anything.
load_dotenv()

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Uploads above this size are rejected before touching disk.
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

# Open Food Facts
OFF_BASE_URL = os.getenv("OFF_BASE_URL", "https://world.openfoodfacts.org")
OFF_USER_AGENT = os.getenv("OFF_USER_AGENT", "PanaFit/0.1 (nutrition facts scanner)")
OFF_TIMEOUT = float(os.getenv("OFF_TIMEOUT", "10"))
OFF_IMAGE_LANGUAGE = os.getenv("OFF_IMAGE_LANGUAGE", "en")
