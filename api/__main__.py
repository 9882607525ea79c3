"""Command line interface for running the API server."""
import logging
import uvicorn

from config import settings_conf

# Configure logging
logging.basicConfig(
    level=settings_conf['log_level'],
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

def main():
    """Run the API server until interrupted."""
    host = settings_conf['host']
    port = settings_conf['port']
    logger.info(f"Starting API server on {host}:{port}")

    uvicorn.run(
        "api:app",
        host=host,
        port=port,
        log_level=settings_conf['log_level'].lower()
    )

if __name__ == "__main__":
    main()
