from __future__ import annotations

import logging
import os
import sys

import uvicorn

from .envs.paywall_env import Settings, get_settings

logger = logging.getLogger(__name__)

APP_IMPORT_PATH = "nutpaywall.api.paywall_api.app:app"


def _reset_metrics_dir() -> None:
    """Empty PROMETHEUS_MULTIPROC_DIR so workers start from fresh metric files."""
    metrics_dir = os.environ.get("PROMETHEUS_MULTIPROC_DIR")
    if not metrics_dir:
        return

    os.makedirs(metrics_dir, exist_ok=True)
    for entry in os.scandir(metrics_dir):
        if entry.is_file():
            os.remove(entry.path)


def _log_startup(settings: Settings) -> None:
    logger.info("Starting %s v%s", settings.app_name, settings.app_version)
    logger.info("Payment records stored in %s", settings.database_url)
    logger.info("Mint: %s (provider: %s)", settings.cashu_mint_url, settings.provider)
    logger.info(
        "Paywall endpoints under http://%s:%s%s; protected path %s",
        settings.api_host,
        settings.api_port,
        settings.base_path,
        settings.protected_path,
    )


def main() -> None:
    """Run the paywall API under uvicorn."""
    settings = get_settings()
    logging.basicConfig(
        level=logging.INFO if settings.enable_logging else logging.WARNING,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    _log_startup(settings)

    # Reload mode runs a single worker
    workers = 1 if settings.api_debug else settings.api_workers
    _reset_metrics_dir()

    uvicorn.run(
        APP_IMPORT_PATH,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
        workers=workers,
        loop="asyncio" if sys.platform == "win32" else "uvloop",
        log_level="info" if settings.enable_logging else "warning",
    )


if __name__ == "__main__":
    main()
