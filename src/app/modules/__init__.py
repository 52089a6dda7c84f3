"""Feature modules with auto-discovery."""

import logging
from importlib import import_module
from pathlib import Path

from fastapi import APIRouter


logger = logging.getLogger(__name__)


def discover_modules() -> list[APIRouter]:
    """Auto-discover and return routers from all modules.

    A module exposes a ``router`` in its ``__init__.py`` and may define
    ``register_routes()``, which imports its route handlers once the
    package itself has finished importing.

    Returns:
        List of FastAPI routers from discovered modules.
    """
    modules_dir = Path(__file__).parent
    routers: list[APIRouter] = []

    for path in sorted(modules_dir.iterdir()):
        if not path.is_dir() or path.name.startswith("_"):
            continue
        module = import_module(f"app.modules.{path.name}")
        if not hasattr(module, "router"):
            continue
        register_routes = getattr(module, "register_routes", None)
        if callable(register_routes):
            register_routes()
        routers.append(module.router)
        logger.info("Loaded module: %s", path.name)

    return routers
