#!/usr/bin/env python3
"""
Database management script for deployment.
Run this during the build/deployment pipeline to create tables and seed
the default game modes.
"""
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from training_hub.app import create_app
from training_hub.directory import GameModeCatalog
from training_hub.models import db

logger = logging.getLogger(__name__)


def deploy():
    """Run deployment tasks."""
    logging.basicConfig(level=logging.INFO)
    logger.info("Creating tables and seeding game modes...")
    app = create_app()
    with app.app_context():
        try:
            db.create_all()
            created = GameModeCatalog().seed_defaults()
        except SQLAlchemyError as e:
            logger.error(f"Error preparing database: {e}")
            sys.exit(1)
    logger.info(f"Database ready, {created} game modes seeded.")


if __name__ == '__main__':
    deploy()
