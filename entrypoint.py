import uvicorn
from constants import HOST, PORT, RELOAD, LOG_LEVEL, LOG_FILE
from logging_config import setup_logging

# Setup logging before importing app
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)

from app import app
from logging_config import get_logger

logger = get_logger(__name__)


def main():
    logger.info(f"Starting RoomChat server on {HOST}:{PORT}")
    # Room state lives in this process, so a single worker only
    uvicorn.run("app:app" if RELOAD else app, host=HOST, port=PORT, reload=RELOAD)


if __name__ == "__main__":
    main()
