#!/usr/bin/env python3
"""Start the API server; the import queue runs inside this same process."""

import os

import uvicorn

if __name__ == "__main__":
    # One process only: the job queue and SSE subscribers live in memory.
    uvicorn.run(
        "app.main:create_app",
        factory=True,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
        workers=1,
        log_level=os.environ.get("LOG_LEVEL", "info").lower(),
    )
