# backend/app/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    return os.environ.get(name, "true" if default else "false").strip().lower() in {"1", "true", "yes"}


def _env_list(name: str, default: str) -> list[str]:
    return [part.strip() for part in os.environ.get(name, default).split(",") if part.strip()]


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Relative SQLite paths resolve inside backend/instance/
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///pos_backoffice.sqlite3")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Costing method used when a purchase line change triggers HPP propagation:
    # "latest" (latest purchase price), "average" (mean purchase price), "current" (recipe/item cost)
    HPP_DEFAULT_METHOD = os.environ.get("HPP_DEFAULT_METHOD", "latest")
    HPP_DEFAULT_MARKUP_PCT = float(os.environ.get("HPP_DEFAULT_MARKUP_PCT", "30"))

    # Attach the report cache / HPP observers to the ORM session
    REPORT_CACHE_ENABLED = _env_flag("REPORT_CACHE_ENABLED", True)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Back-office frontend dev servers
    CORS_ALLOWED_ORIGINS = _env_list(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173",
    )
