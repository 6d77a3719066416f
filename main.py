"""
Pexi Ai — floating chat window entry point.

Run with:
    python main.py

Requires GEMINI_API_KEY (or API_KEY) in the environment.
"""

import logging
import sys

# Require Python 3.10+ for the union-type hints used throughout the package.
if sys.version_info < (3, 10):
    sys.exit(
        "Python 3.10 or later is required.\n"
        f"You are running Python {sys.version_info.major}.{sys.version_info.minor}."
    )

from pexi.app import PexiChatApp  # noqa: E402
from pexi.config import PexiConfig  # noqa: E402


def main() -> None:
    config = PexiConfig.from_env()
    # Set PEXI_LOG_LEVEL=DEBUG to see request summaries and geometry events.
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s  %(message)s",
        datefmt="%H:%M:%S",
    )
    app = PexiChatApp(config)
    app.run()


if __name__ == "__main__":
    main()
