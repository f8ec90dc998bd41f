#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

Starts uvicorn with auto-reload against the configured database. Payments go
through the fake gateway unless PAYMENTS_FAKE=false and provider keys are set.
"""
import logging
import os
from pathlib import Path

import uvicorn

logger = logging.getLogger(__name__)

if __name__ == "__main__":
    os.chdir(Path(__file__).parent)
    os.environ.setdefault("PAYMENTS_FAKE", "true")
    port = int(os.environ.get("PORT", "8000"))

    logging.basicConfig(level=logging.INFO)
    logger.info("Starting development server at http://localhost:%s (docs at /docs)", port)

    uvicorn.run("app.main:app", host="0.0.0.0", port=port, reload=True, log_level="info")
