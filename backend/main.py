import logging
import os
import sys
from contextlib import asynccontextmanager

# Ensure this directory is in the path for uvicorn and other runners
current_dir = os.path.dirname(os.path.abspath(__file__))
if current_dir not in sys.path:
    sys.path.append(current_dir)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import CORS_ORIGINS
from database import close_store, init_store
from routes.auth_routes import router as auth_router
from routes.chat_routes import router as chat_router, ws_router as chat_ws_router
from routes.profile_routes import router as profile_router
from routes.social_routes import router as social_router
from services.upload_service import SupabaseUploader
from supabase_client import SupabaseAuth

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize the document store
try:
    init_store()
except Exception as e:
    logger.error(f"Store init failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_store()


app = FastAPI(title="Chat Sync Backend", lifespan=lifespan)
app.state.auth = SupabaseAuth()
app.state.uploader = SupabaseUploader()


@app.get("/api/v1/health-check")
async def health():
    return {"status": "ok", "message": "Backend is alive!"}


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Redirect-To"],
)

app.include_router(auth_router)
app.include_router(profile_router)
app.include_router(social_router)
app.include_router(chat_router)
app.include_router(chat_ws_router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
