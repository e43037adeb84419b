# Load environment variables FIRST, before any module imports that need them
from dotenv import load_dotenv
load_dotenv()

import logging

from .app_factory import create_app
from .logging_config import setup_logging

# Configure logging at module load time
setup_logging()

logger = logging.getLogger(__name__)

# Multi-tenant app; tenants are resolved per request.
# Run with: uvicorn storefront.main:app
app = create_app()
