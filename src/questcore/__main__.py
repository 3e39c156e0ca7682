import logging
import os

from dotenv import load_dotenv

from questcore.bootstrap import create_game_service
from questcore.presentation.cli import run_demo


def _configure_logging() -> None:
    level_name = os.getenv("QUEST_LOG_LEVEL", "WARNING").strip().upper()
    level = getattr(logging, level_name, logging.WARNING)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def main() -> None:
    load_dotenv()
    _configure_logging()
    game_service = create_game_service()
    try:
        run_demo(game_service)
    except KeyboardInterrupt:
        print("\nSession ended.")
    finally:
        game_service.close()


if __name__ == "__main__":
    main()
