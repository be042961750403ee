"""
Contact Dedup Application Entry Point
------------------------------------
This file serves as the entry point for running the deduplication API with uvicorn.
"""

import logging

from contact_dedup.config import load_settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)

# Import the app from the main module
from contact_dedup.main import app

# If this file is run directly, start the server
if __name__ == "__main__":
    import uvicorn

    port = load_settings().port

    logger.info(f"Starting Contact Dedup API on port {port}")
    uvicorn.run("app:app", host="0.0.0.0", port=port, reload=True)
