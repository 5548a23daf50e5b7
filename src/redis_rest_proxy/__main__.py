from __future__ import annotations

import uvicorn

from .logging import build_log_config
from .settings import get_settings, load_env


def main() -> None:
    load_env()
    settings = get_settings()
    # uvicorn handles SIGINT/SIGTERM and runs the app's lifespan shutdown, which closes the store.
    uvicorn.run(
        "redis_rest_proxy.app:app",
        host=settings.server_host,
        port=settings.server_port,
        log_config=build_log_config(settings.log_level, json_output=settings.log_format == "json"),
        access_log=False,
    )


if __name__ == "__main__":
    main()
