#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Script to create MongoDB indexes for the land application collections.

    python -m land_api.scripts.create_indexes
"""

import sys
import logging

from land_api.config import load_config
from land_api.services.mongodb import MongoDBService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main(mongodb_service: MongoDBService = None) -> int:
    """Create MongoDB indexes. Returns the process exit code."""
    if mongodb_service is None:
        config = load_config()
        mongodb_service = MongoDBService(config['MONGODB_URI'], config['MONGODB_DATABASE'])

    try:
        logger.info("Starting MongoDB index creation...")

        health = mongodb_service.health_check()
        if health['status'] != 'healthy':
            logger.error(f"MongoDB is not healthy: {health}")
            return 1

        logger.info(f"Connected to MongoDB {health.get('version')} - Database: {health['database']}")

        mongodb_service.create_indexes()

        logger.info("MongoDB indexes created successfully!")
        return 0

    except Exception as e:
        logger.error(f"Failed to create indexes: {e}")
        return 1
    finally:
        mongodb_service.close_connection()


if __name__ == "__main__":
    sys.exit(main())
