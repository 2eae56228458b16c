import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware
from app.api.admin import router as admin_router
from app.api.auth import router as auth_router
from app.api.clothes import router as clothes_router
from app.api.pages import router as pages_router
from app.api.profile import router as profile_router
from app.core.logging_config import setup_structured_logging
from app.core.secrets import resolve_setting
from dotenv import load_dotenv

load_dotenv()
setup_structured_logging()

app = FastAPI(title="ClothTracker Backend")

# Configure CORS for frontend access
# In production, set ALLOWED_ORIGINS environment variable with comma-separated domains
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:3001").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Cookie session: auth-flow page state and the sealed Supabase tokens
secret_key = resolve_setting("SESSION_SECRET_KEY", required=os.getenv("ENVIRONMENT") == "production")
if not secret_key:
    # Fallback for development
    secret_key = "dev-secret-key-replace-in-production"
app.add_middleware(
    SessionMiddleware,
    secret_key=secret_key,
    https_only=os.getenv("ENVIRONMENT") == "production",
)

app.include_router(pages_router)
app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(clothes_router, prefix="/clothes", tags=["clothes"])
app.include_router(profile_router, prefix="/profile", tags=["profile"])
app.include_router(admin_router, prefix="/admin", tags=["admin"])
