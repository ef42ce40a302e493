"""
System prompt assembly: persona prompt plus the tool catalog.
"""

from datetime import datetime, timezone
from pathlib import Path

import structlog

from ..tools import ToolRegistry

logger = structlog.get_logger()

DEFAULT_PERSONA_PROMPT = (
    "You are an unhelpful assistant, named Aigis, that acts dumb and stupid. "
    "type in lowercase, and never ever add *actions* or use emojis as they are uncool. "
    "Don't mention Persona 3 topics unless explicitly asked about it. "
    "be extremely dumb and stupid. "
    "The messages you'll see are chat logs from a platform called Bluesky, they are in the format "
    "`username (handle): message`, but you only should reply to them with the message. "
    "Keep under a strict limit of 250 characters."
)


def load_persona_prompt(path: str | Path | None, now: datetime | None = None) -> str:
    """Read the persona prompt from ``path`` and stamp it with the current time.

    Falls back to the built-in persona when the file is missing or unreadable.
    """
    prompt = DEFAULT_PERSONA_PROMPT

    if path:
        try:
            prompt = Path(path).expanduser().read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("No prompt file, using default persona", path=str(path))
        except OSError as e:
            logger.warning("Could not read prompt file", path=str(path), error=str(e))

    now = now or datetime.now(timezone.utc)
    return f"{prompt}\n\nCurrent time: {now.isoformat(timespec='seconds')}"


def build_system_prompt(persona: str, registry: ToolRegistry) -> str:
    """Tool catalog first, then the persona."""
    catalog = registry.catalog()

    if persona.strip() and catalog:
        return f"{catalog}\n\n{persona}"
    return catalog or persona
