# init_db.py
import logging

from dotenv import load_dotenv

load_dotenv()

from database import SOURCE_DB_PATHS, setup_database_standalone
from utils.logging_setup import configure_logging

LOGGER = logging.getLogger(__name__)


if __name__ == "__main__":
    configure_logging()
    LOGGER.info("Initializing %d source databases...", len(SOURCE_DB_PATHS), extra={"source": "db"})
    setup_database_standalone()
    LOGGER.info("Database initialization complete.", extra={"source": "db"})
