"""Application-wide constants for the trainer booking platform."""

from __future__ import annotations

import os

BRAND_NAME = "FitTrainer"

API_TITLE = f"{BRAND_NAME} API"
API_DESCRIPTION = (
    f"Backend API for {BRAND_NAME} - scheduling, booking and payments for personal trainers"
)
API_VERSION = "1.0.0"

# Frontend URLs
DEFAULT_DEV_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]


def _split_env(name: str) -> list[str]:
    value = os.getenv(name, "")
    return [origin.strip() for origin in value.split(",") if origin.strip()]


ALLOWED_ORIGINS = (
    _split_env("ALLOWED_ORIGINS") or _split_env("CORS_ALLOW_ORIGINS") or DEFAULT_DEV_ORIGINS
)
