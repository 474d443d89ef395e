import logging
import os
import sys

GAME_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
CLI_FORMAT = "rollprogress: %(levelname)s %(name)s: %(message)s"


def configure_logging(default_level: int = logging.INFO, cli: bool = False) -> None:
    """Configure the root logger for the game process or the maintenance CLI.

    RP_LOG_LEVEL (a level name such as ``debug``) overrides ``default_level``;
    unknown names are reported and ignored. CLI records go to stderr without
    timestamps so that exported JSON on stdout stays clean.
    """
    level = default_level
    level_name = os.getenv("RP_LOG_LEVEL", "").strip()
    unknown = False
    if level_name:
        resolved = logging.getLevelName(level_name.upper())
        if isinstance(resolved, int):
            level = resolved
        else:
            unknown = True
    logging.basicConfig(
        level=level,
        format=CLI_FORMAT if cli else GAME_FORMAT,
        stream=sys.stderr,
    )
    if unknown:
        logging.getLogger(__name__).warning("Ignoring unknown RP_LOG_LEVEL %r", level_name)
