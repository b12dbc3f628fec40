#!/usr/bin/env python3
"""
Script to run the Book API server.
"""

import sys

import uvicorn
from pydantic import ValidationError

from book_api.config import load_config, missing_fields
from utilities.logger import setup_logging, get_logger


def main():
    """Run the API server."""
    try:
        config = load_config()
    except ValidationError as e:
        setup_logging()
        logger = get_logger(__name__)
        logger.error(
            "Missing or invalid configuration",
            required=["DB_HOST", "DB_USER", "DB_PASSWORD", "DB_NAME"],
            missing=missing_fields(e),
            error=str(e)
        )
        sys.exit(1)

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug
    )
    logger = get_logger(__name__)
    logger.info(
        "Starting Book API server",
        host=config.host,
        port=config.port,
        environment=config.environment,
        database=config.db_name
    )

    uvicorn.run(
        "book_api.main:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower(),
        access_log=False
    )


if __name__ == "__main__":
    main()
