from __future__ import annotations

import uvicorn

from infrachat.core.config import get_settings
from infrachat.core.logging import configure_logging


def main() -> None:
    settings = get_settings()
    configure_logging(
        level=settings.observability.log_level,
        fmt=settings.observability.log_format,
        context={
            "service": settings.observability.otel_service_name,
            "version": settings.app_version,
            "environment": settings.environment,
        },
    )

    uvicorn.run(
        "infrachat.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=bool(settings.debug),
        log_level=settings.observability.log_level.lower(),
    )


if __name__ == "__main__":
    main()
