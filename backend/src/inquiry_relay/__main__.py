"""Run the API with uvicorn: python -m inquiry_relay"""

import os

import uvicorn

from .config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "inquiry_relay.asgi:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=settings.PORT,
        reload=settings.ENVIRONMENT == "development",
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
