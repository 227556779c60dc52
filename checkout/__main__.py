"""Run the checkout API with uvicorn: ``python -m checkout``."""

import uvicorn

from checkout.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "checkout.main:app",
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":  # pragma: no cover - script entry point
    main()
