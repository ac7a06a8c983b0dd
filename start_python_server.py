#!/usr/bin/env python3
import os

import uvicorn

from app.config import settings

if __name__ == "__main__":
    port = int(os.getenv("PORT", 5000))

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=port,
        reload=settings.ENVIRONMENT == "development",
        log_level=settings.LOG_LEVEL.lower()
    )
