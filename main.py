"""
Entry point for the Users Backend
"""

import sys
import os
import logging
from dotenv import load_dotenv

# Load environment variables from config/.env, then .env
load_dotenv(os.path.join(os.path.dirname(__file__), 'config', '.env'))
load_dotenv()

# Add src directory to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from config.settings import ConfigurationError, load_settings
from database.connection import DatabaseClient
from app import create_app

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

def main():
    try:
        settings = load_settings()
    except ConfigurationError as e:
        logger.error(f"✗ Configuration error: {e}")
        sys.exit(1)

    logging.getLogger().setLevel(settings.log_level)

    database = DatabaseClient(
        settings.database_url,
        retry_interval=settings.db_retry_interval,
        max_attempts=settings.db_retry_max_attempts,
    )
    app = create_app(database, allowed_origins=settings.allowed_origins)

    import uvicorn
    logger.info(f"✓ Server running on http://localhost:{settings.port}")
    uvicorn.run(app, host="0.0.0.0", port=settings.port)

if __name__ == "__main__":
    main()
