"""Run the interaction server: ``python -m stockbot``."""

from __future__ import annotations

from dotenv import load_dotenv

from .config import Settings
from .logging_utils import get_logger, setup_logging
from .server import create_app
from .utils.event_loop_manager import EventLoopManager


def main() -> int:
    load_dotenv()
    settings = Settings()
    setup_logging(settings)
    log = get_logger("main")

    if not settings.discord_application_id:
        log.error("missing_config key=DISCORD_APPLICATION_ID")
        return 2

    loop_manager = EventLoopManager()
    loop_manager.start()
    app = create_app(settings, loop_manager=loop_manager)

    log.info("server_starting port=%d", settings.port)
    try:
        app.run(host="0.0.0.0", port=settings.port, debug=False)
    finally:
        loop_manager.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
