"""
Main entry point for Frame Proxy
Run this file to start the application
"""

import uvicorn
from loguru import logger
import sys
from pathlib import Path

from config.settings import get_settings

settings = get_settings()


def configure_logging():
    """Route all logging through loguru sinks from settings"""
    logger.remove()
    logger.add(
        sys.stdout,
        format=settings.log_format,
        level=settings.log_level,
        colorize=True
    )

    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            settings.log_file,
            format=settings.log_format,
            level=settings.log_level,
            rotation=settings.log_rotation,
            retention=settings.log_retention,
            compression="zip"
        )


def main():
    """Main function to run the application"""

    configure_logging()

    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Configuration:")
    logger.info(f"  • Host: {settings.host}:{settings.port}")
    logger.info(f"  • Request timeout: {settings.request_timeout}s")
    logger.info(f"  • CORS relay: {settings.cors_relay_url if settings.cors_relay_enabled else 'disabled'}")
    logger.info(f"  • Debug Mode: {settings.debug}")

    uvicorn.run(
        "frameproxy.core.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        workers=1 if settings.reload else settings.workers,
        log_level=settings.log_level.lower(),
        access_log=True
    )


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        logger.info("Application stopped by user")
    except Exception as e:
        logger.error(f"Application error: {str(e)}")
        sys.exit(1)
