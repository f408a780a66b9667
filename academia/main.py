"""FastAPI application entry point."""

from academia.application import create_app
from academia.config import get_settings
from academia.utils.logging import setup_logging

# Setup logging before creating app
setup_logging()

# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "academia.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
