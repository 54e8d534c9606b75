#!/usr/bin/env python3
# backend/run.py
"""
Development server for the lounge booking API.

Uses the SQLite database from DATABASE_URL (./lounge.db by default) and the
in-memory cache unless REDIS_URL is set.
"""
import os
import sys
from pathlib import Path

backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

import uvicorn

if __name__ == "__main__":
    print("Starting lounge booking API at http://localhost:8000 (docs at /docs)")
    uvicorn.run("lounge.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
