"""API server entry point for python -m vidblog.api"""
import logging

import uvicorn
from vidblog.config import settings

if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level.upper())
    uvicorn.run(
        "vidblog.api.app:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=False,
    )
