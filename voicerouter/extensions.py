# voicerouter/extensions.py
# -*- coding: utf-8 -*-
"""
Flask extensions instances and configuration.
Central place to initialize extensions to avoid circular imports.
"""

import os

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from voicerouter.services.resilient_cache import ResilientCache

# Database ORM: read-only access to tenant routing data plus the fallback lock table
db = SQLAlchemy()

# Database Migrations: Handles schema migrations using Alembic
migrations_dir = os.path.join(os.path.dirname(__file__), '..', 'migrations')

migrate = Migrate(directory=migrations_dir)

# Cache-aside store and named locks: redis first, database lock table as fallback.
# The redis client is built in init_app() from REDIS_URL.
cache = ResilientCache()
