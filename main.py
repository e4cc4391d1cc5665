import logging
import os

import uvicorn
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def main():
    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8000"))
    logger.info("Starting streamsite on %s:%s", host, port)

    uvicorn.run(
        "app.main:app",
        host=host,
        port=port,
        reload=os.getenv("DEBUG", "").lower() in ("1", "true"),
    )


if __name__ == "__main__":
    main()
