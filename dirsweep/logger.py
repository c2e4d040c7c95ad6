import logging

LEVELS = {0: logging.ERROR, 1: logging.WARNING, 2: logging.INFO}


def initialize(verbosity: int) -> None:
    """Configure the root logger from the number of -v flags given."""
    level = LEVELS.get(verbosity, logging.DEBUG)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )
    # aiohttp chatter only matters when tracing
    logging.getLogger("aiohttp").setLevel(max(level, logging.INFO))
