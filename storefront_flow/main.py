# Load environment variables FIRST, before any module imports that need them
from dotenv import load_dotenv
load_dotenv()

import logging

from .app_factory import create_app, run
from .db import init_db
from .logging_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)

init_db()
app = create_app()


if __name__ == "__main__":
    run()
