"""
Main entry point for Issue Autopilot.
"""

from .api import create_app

app = create_app()

if __name__ == "__main__":
    import uvicorn

    from .config import get_settings

    settings = get_settings()
    uvicorn.run(
        "issue_autopilot.main:app",
        host=settings.api_host,
        port=settings.api_port,
        workers=1,
    )
