"""Project context loader.

The context block is resolved once at startup from the PROJECT_CONTEXT setting,
then the file at PROJECT_CONTEXT_PATH, then a built-in fallback.
"""

from __future__ import annotations

import logging
from pathlib import Path

from contextgate.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_CONTEXT = """\
Project "Apollo"
• Stack: Go, PostgreSQL, Redis
• Domain: payments processing
• Goal: 99.9% uptime and sub-second latency"""


def load_project_context(settings: Settings) -> str:
    """Return the project context text for this process."""
    if settings.project_context:
        logger.info("Project context loaded from PROJECT_CONTEXT")
        return settings.project_context

    if settings.project_context_path:
        path = Path(settings.project_context_path).resolve()
        if path.is_file():
            logger.info("Project context loaded from %s", path)
            return path.read_text(encoding="utf-8")
        logger.warning("Project context file %s not found — using default", path)

    return DEFAULT_PROJECT_CONTEXT
