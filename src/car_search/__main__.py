"""Poetry script entrypoint for Car Search API."""

import uvicorn

from car_search.config import get_settings


def main() -> None:
    """Run dev server."""
    settings = get_settings()
    uvicorn.run(
        "car_search.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        factory=False,
    )


if __name__ == "__main__":
    main()
