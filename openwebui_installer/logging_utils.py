from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from .lib.command import give_to_user

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(
    log_path: str,
    level: int = logging.INFO,
    also_console: bool = True,
    owner: Optional[str] = None,
) -> str:
    """Configure logging for one installer run.

    All decisions and all external command output go to one append-only
    file per run. Lines are tagged INFO / WARN / ERROR.

    Notes:
    - If the requested directory can't be created or written, we fall back
      to a file in the current working directory and report both paths.
    - Calling this again in the same process is a no-op and returns the
      path chosen the first time.
    - When running as root, a log directory or file created here is handed
      to owner, so later runs without sudo can append to it.

    Returns the actual file path being used.
    """

    logging.addLevelName(logging.WARNING, "WARN")

    logger = logging.getLogger()
    logger.setLevel(level)

    if getattr(logger, "_openwebui_configured", False):
        return getattr(logger, "_openwebui_log_path", log_path)

    handlers: list[logging.Handler] = []

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")

    file_handler: Optional[logging.Handler] = None
    try:
        log_dir = Path(os.path.dirname(log_path) or ".")
        new_dir = not log_dir.exists()
        new_file = not os.path.exists(log_path)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        chosen_path = log_path
    except OSError:
        fallback = str(Path.cwd() / Path(log_path).name)
        file_handler = logging.FileHandler(fallback, mode="a", encoding="utf-8")
        chosen_path = fallback
    else:
        if new_dir:
            give_to_user(log_dir, owner)
        if new_file:
            give_to_user(log_path, owner)
    file_handler.setFormatter(fmt)
    handlers.append(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setFormatter(fmt)
        handlers.append(console)

    for h in handlers:
        logger.addHandler(h)

    setattr(logger, "_openwebui_configured", True)
    setattr(logger, "_openwebui_log_path", chosen_path)
    setattr(logger, "_openwebui_handlers", handlers)

    logging.getLogger(__name__).info(
        "Logging initialized (requested=%s, actual=%s)", log_path, chosen_path
    )
    return chosen_path


def reset_logging() -> None:
    """Detach handlers installed by configure_logging()."""

    logger = logging.getLogger()
    if not getattr(logger, "_openwebui_configured", False):
        return
    for h in getattr(logger, "_openwebui_handlers", []):
        logger.removeHandler(h)
        h.close()
    setattr(logger, "_openwebui_handlers", [])
    setattr(logger, "_openwebui_configured", False)
    setattr(logger, "_openwebui_log_path", None)
