#!/usr/bin/env python3
# backend/run.py
"""
Development server runner for the class booking API.
"""
from pathlib import Path
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))

import uvicorn

from app.core.config import settings

if __name__ == "__main__":
    print("Starting class booking API")
    print(f"Environment: {settings.environment}")
    print("API Docs: http://localhost:8000/docs")

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
