"""
Database connection for StockPilot

Exposes a module-level `db` handle (pymongo Database) built from the
DATABASE_URL and DATABASE_NAME environment variables. When either is missing
`db` stays None and the /test route reports the database as unavailable.
"""

import os
import logging

from dotenv import load_dotenv
from pymongo import MongoClient

load_dotenv()

logger = logging.getLogger("stockpilot.database")

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

db = None

if DATABASE_URL and DATABASE_NAME:
    client = MongoClient(DATABASE_URL, tz_aware=True)
    db = client[DATABASE_NAME]
    logger.info("Using MongoDB database %s", DATABASE_NAME)
else:
    logger.warning("DATABASE_URL or DATABASE_NAME not set, database unavailable")
