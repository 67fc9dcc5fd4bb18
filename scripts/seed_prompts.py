"""Write the built-in agent prompts to the configured prompt store."""
from __future__ import annotations

import argparse
import asyncio
import logging

from dotenv import load_dotenv

from idea_agent.config import get_settings
from idea_agent.container import build_container
from idea_agent.logging import configure_logging

logger = logging.getLogger("seed_prompts")


async def seed(*, overwrite: bool) -> int:
    settings = get_settings()
    container = build_container(settings)
    try:
        return await container.prompt_store.seed_defaults(overwrite=overwrite, updated_by="seed-script")
    finally:
        if container.firebase is not None:
            await container.firebase.dispose()


def main() -> None:
    load_dotenv()
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace prompts that already exist instead of skipping them",
    )
    args = parser.parse_args()
    configure_logging(get_settings().log_level)

    created = asyncio.run(seed(overwrite=args.overwrite))
    logger.info("Seeded %d prompts", created)


if __name__ == "__main__":
    main()
