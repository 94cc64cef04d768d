"""
FastAPI application entry point.

Run with: uvicorn api.main:app --reload
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pathlib import Path
from dotenv import load_dotenv
import logging

# Load environment variables from backend/.env (optional) before other imports that read env
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(env_path)

from api.routes import debug, trips
from services.metadata_extractor import register_heif_opener

logger = logging.getLogger(__name__)

# Register HEIF/HEIC opener at startup (for iPhone photos)
heif_available = register_heif_opener()
if not heif_available:
    logger.info("pillow-heif not installed; HEIC uploads will fall back to file metadata")


app = FastAPI(
    title="Trip Generator API",
    description="Turns a batch of travel photos into a trip with spots, tags and titles",
    version="0.1.0",
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure properly for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(trips.router, prefix="/trips", tags=["trips"])
app.include_router(debug.router, prefix="/debug", tags=["debug"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Trip Generator API", "heif": heif_available}


@app.get("/health")
async def health():
    return {"status": "healthy"}
