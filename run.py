#!/usr/bin/env python3
# run.py
"""
Development server runner.
For local development only; production runs the app under its own process manager.
"""
import os

os.environ.setdefault("ENVIRONMENT", "development")

import uvicorn

if __name__ == "__main__":
    print("Starting TutorHub development server")
    print("Access at: http://localhost:8000")
    print("API Docs: http://localhost:8000/docs")

    uvicorn.run(
        "tutorhub.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
        log_level="info",
    )
