"""Runtime configuration for the HackHub backend."""

import os

# Storage
DB_PATH = os.getenv("HACKHUB_DB_PATH")  # None -> backend/data/app.db

# HTTP
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "HACKHUB_CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"
    ).split(",")
    if origin.strip()
]

# Compare-and-swap attempts per hackathon write before giving up with a 409
CAS_MAX_ATTEMPTS = max(1, int(os.getenv("HACKHUB_CAS_MAX_ATTEMPTS", "3")))

LOG_LEVEL = os.getenv("HACKHUB_LOG_LEVEL", "INFO").upper()

# Hackathon defaults
DEFAULT_TEAM_SIZE_MIN = 1
DEFAULT_TEAM_SIZE_MAX = 4
MAX_PARTICIPANTS_CEILING = 10000
