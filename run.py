"""Convenience runner for the Movers Connect API."""

import uvicorn

from moverconnect.api.settings import settings


def main():
    uvicorn.run(
        "moverconnect.api.main:app",
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        reload=True,
        reload_dirs=["moverconnect"],
    )


if __name__ == "__main__":
    main()
