"""
Rivu Core -- Application Entry Point.

Starts the FastAPI server via uvicorn.

Usage:
    python main.py              # Development (reload with RIVU_DEV_MODE=1)
    uvicorn main:app --host 0.0.0.0 --port 8000  # Production
"""

from __future__ import annotations

import uvicorn

from rivu.api import create_app
from rivu.config.settings import get_settings
from rivu.infra.database import init_db
from rivu.lib.logging import setup_logging

settings = get_settings()
setup_logging(settings)
init_db()

app = create_app(settings)


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.dev_mode,
        log_level=settings.log_level.lower(),
    )
