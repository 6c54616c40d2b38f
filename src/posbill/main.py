from __future__ import annotations

import logging

from posbill.application.container import AppContainer, build_container
from posbill.config import get_app_paths, load_settings
from posbill.logging_config import setup_logging


def bootstrap(app_name: str = "PosBilling") -> AppContainer:
    """Resolve per-user paths, start file logging and wire the services."""
    paths = get_app_paths(app_name)
    setup_logging(paths.logs_dir, level=logging.INFO)

    container = build_container(paths.db_path, load_settings())
    logging.getLogger(__name__).info("posbill_started db=%s", paths.db_path)
    return container
