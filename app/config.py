import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Local SQLite file unless a real database is configured
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./grocer.db")

# Frontend base URL (storefront) - used for CORS defaults
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    f"{FRONTEND_URL},http://localhost:3000",
).split(",")

# Delivery slots are wall-clock times in the store's timezone
STORE_TIMEZONE = os.getenv("STORE_TIMEZONE", "Asia/Kolkata")

# Per-delivery charges (same rule the storefront shows at checkout)
FREE_DELIVERY_THRESHOLD = float(os.getenv("FREE_DELIVERY_THRESHOLD", "500"))
DELIVERY_FEE = float(os.getenv("DELIVERY_FEE", "40"))
