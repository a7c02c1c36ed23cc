from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Sequence

from .config import AppConfig
from .di import AppContainer
from ..modules.deeplinks.domain.errors import DeepLinkError

logger = logging.getLogger(__name__)


async def run(urls: Sequence[str], config: AppConfig | None = None) -> int:
    """Handle each deep link in order; return the number of links that failed."""
    config = config or AppConfig()
    config.ensure_dirs()

    container = await AppContainer.build(config)
    await container.on_startup()
    failures = 0
    session_id = None
    try:
        for url in urls:
            try:
                result = await container.engine.handle(url, session_id=session_id)
            except DeepLinkError as exc:
                failures += 1
                logger.error("%s: %s", type(exc).__name__, exc)
                continue
            # Later links on the command line share the first link's session
            session_id = result.session.id
            logger.info("%s", json.dumps(result.to_dict(), ensure_ascii=False))
    finally:
        await container.on_shutdown()
    return failures


async def main(argv: Sequence[str] | None = None) -> int:
    config = AppConfig()
    logging.basicConfig(level=getattr(logging, config.log_level.upper(), logging.INFO))

    urls = list(sys.argv[1:] if argv is None else argv)
    if not urls:
        logger.error("Usage: python -m freshlink.app.main <deep link> [<deep link> ...]")
        return 2
    failures = await run(urls, config)
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
