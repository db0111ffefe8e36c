import asyncio
import logging
import os
import signal
import sys
import uvicorn

from .config import settings
from .state import SessionStore
from . import server

# Setup logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
# Silence noisy libraries
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

logger = logging.getLogger("main")

class SyncServer:
    def __init__(self):
        self.store = SessionStore()

        # Link session store to server module
        server.store = self.store

        if os.path.isdir(settings.CONTENT_DIR):
            server.mount_content(settings.CONTENT_DIR)
        else:
            logger.warning(f"Content directory {settings.CONTENT_DIR} not found, static files disabled")

    async def start(self):
        logger.info(f"Listening on {settings.HTTP_SERVER_HOST}:{settings.HTTP_SERVER_PORT}")
        config = uvicorn.Config(
            server.app,
            host=settings.HTTP_SERVER_HOST,
            port=settings.HTTP_SERVER_PORT,
            log_level="warning"
        )
        try:
            await uvicorn.Server(config).serve()
        except asyncio.CancelledError:
            pass

def handle_sigterm(sig, frame):
    logger.info("Received SIGTERM, shutting down...")
    sys.exit(0)

def run():
    signal.signal(signal.SIGTERM, handle_sigterm)
    service = SyncServer()
    try:
        asyncio.run(service.start())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")

if __name__ == "__main__":
    run()
