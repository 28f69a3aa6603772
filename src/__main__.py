import logging

import uvicorn

from config import settings

if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level)
    uvicorn.run(
        "api:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
