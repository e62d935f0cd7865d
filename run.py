#!/usr/bin/env python3
"""
Lending Core Entry Point

Starts the FastAPI server with settings from LENDING_* environment variables.
"""

import sys

import uvicorn

from lending_core.config import get_config
from lending_core.logging_config import setup_logging


def run_server(host: str, port: int, reload: bool = False, log_level: str = "INFO"):
    """Run the FastAPI server"""
    uvicorn.run(
        "lending_core.api:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level.lower()
    )


if __name__ == "__main__":
    config = get_config()
    logger = setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)

    print("Starting Lending Core...")
    print(f"Storage: {'SQLite at ' + config.database_path if config.use_sqlite else 'in-memory'}")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(
            host=config.api_host,
            port=config.api_port,
            reload=config.api_reload,
            log_level=config.log_level
        )
    except KeyboardInterrupt:
        print("\nShutting down Lending Core...")
    except Exception as e:
        logger.exception("Server failed to start")
        print(f"Error starting server: {e}")
        sys.exit(1)
