"""Main entry point for running the FastAPI application with auto-reload."""
import uvicorn

from garden.config import settings

if __name__ == "__main__":
    print(f"Starting {settings.app_name} v{settings.version}")
    print(f"Environment: {settings.environment.value}")
    print(f"Debug mode: {settings.debug}")
    print(f"Database: {settings.db.url.split('@')[-1] if '@' in settings.db.url else 'SQLite'}")
    print(f"Translation: {settings.translation.base_url if settings.translation.enabled else 'Disabled'}")
    print("-" * 50)

    uvicorn.run(
        "garden.api:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        reload_dirs=["garden", "i18n", "config"] if settings.debug else None,
        log_level=settings.logging.level.lower(),
    )
