import os
from dotenv import load_dotenv

load_dotenv()

# --- Supabase Configuration ---
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
SUPABASE_STORAGE_BUCKET = os.getenv("SUPABASE_STORAGE_BUCKET", "chat-images")

# --- JWT Configuration (Supabase access tokens) ---
JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET", "change-this-secret-key")
JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "authenticated")

# --- Document store ---
# "memory" keeps everything in-process (dev/tests), "supabase" uses PostgREST
STORE_BACKEND = os.getenv("STORE_BACKEND", "memory").lower()
DOCUMENTS_TABLE = os.getenv("DOCUMENTS_TABLE", "documents")
DOCUMENTS_UPDATE_FUNCTION = os.getenv("DOCUMENTS_UPDATE_FUNCTION", "update_document")
POLL_INTERVAL_SECONDS = float(os.getenv("POLL_INTERVAL_SECONDS", "2.0"))
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))

# --- Chat behaviour ---
MESSAGES_PER_PAGE = 50
TYPING_TIMEOUT_SECONDS = 3.0
TYPING_WRITE_INTERVAL_SECONDS = 1.0
SCROLL_GATE_SECONDS = 0.2
LOAD_OLDER_THRESHOLD = 0.2  # top 20% of the scrollable range

# --- Uploads / profile validation ---
MAX_IMAGE_BYTES = 5 * 1024 * 1024
BIO_MAX_LENGTH = 250
MIN_PASSWORD_LENGTH = 6
DEFAULT_BIO = "Hey, There I am using chat app"

# --- Presence ---
PRESENCE_INTERVAL_SECONDS = 60
ONLINE_WINDOW_MS = 70_000

# --- CORS ---
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
