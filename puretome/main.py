"""
PureTome API - main entry point.

Run with:
    python -m puretome.main
or:
    uvicorn puretome.main:app --reload
"""

from __future__ import annotations

import logging

from puretome.api.app import create_app
from puretome.config import get_settings


def configure_logging(debug: bool = False) -> None:
    """Root logging setup for the API process."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # boto is chatty at DEBUG
    logging.getLogger("botocore").setLevel(logging.WARNING)


settings = get_settings()
configure_logging(settings.debug)

app = create_app(settings)


def main() -> None:
    import uvicorn

    uvicorn.run(
        "puretome.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
