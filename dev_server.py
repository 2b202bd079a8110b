#!/usr/bin/env python3
"""
Development server startup script.
"""
import uvicorn

from shared.config.settings import settings


def main():
    """Development server entry point."""
    print(f"Starting {settings.api_title} ({settings.environment}, repository: {settings.repository_type})")
    uvicorn.run(
        "requisition_lifecycle_api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower()
    )

if __name__ == "__main__":
    main()
