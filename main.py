#!/usr/bin/env python3
"""
Signal Desk - Main Entry Point
Serves the signal and backtest API.
"""
import sys

import uvicorn

from src.app import app
from src.config import settings

if __name__ == "__main__":
    print(f"Starting {settings.APP_NAME}...")
    print(f"API Docs: http://localhost:{settings.APP_PORT}/docs")
    print("Press Ctrl+C to stop.")
    try:
        uvicorn.run(
            app,
            host="0.0.0.0",
            port=settings.APP_PORT,
            reload=False,
        )
    except Exception as e:
        print(f"Failed to start: {e}")
        sys.exit(1)
