"""citechat entry point.

Runs the API and the chat page either on one server (``RUN_MODE=integrated``,
the default) or as two processes (``RUN_MODE=separate``). Addresses come from
``HOST``, ``PORT`` (API, or both in integrated mode) and ``UI_PORT``.
Environment variables are loaded from .env file.
"""

import logging
import os
import sys

from dotenv import load_dotenv

# Load environment variables before any other imports that might need them
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

HOST = os.getenv("HOST", "0.0.0.0")
API_PORT = int(os.getenv("PORT", "8000"))
UI_PORT = int(os.getenv("UI_PORT", "8080"))


def run_integrated() -> None:
    """Serve the API and mount the NiceGUI page on the same app."""
    import uvicorn
    from nicegui import ui

    from citechat.api.app import create_app
    from citechat.ui.chat_page import chat_page  # noqa: F401 - Registers the page

    app = create_app()
    ui.run_with(
        app,
        title="Document Assistant",
        storage_secret=os.getenv("NICEGUI_STORAGE_SECRET", "citechat-secret"),
    )

    logger.info(f"Chat page and API on http://localhost:{API_PORT} (docs at /docs)")
    uvicorn.run(app, host=HOST, port=API_PORT, log_level=os.getenv("LOG_LEVEL", "info").lower())


def run_separate() -> None:
    """Run the API and the chat page as two child processes.

    The page reaches the API through ``API_BASE_URL``, which defaults to the
    local API port. Stops both when either exits.
    """
    import subprocess
    import time

    ui_env = {**os.environ, "API_BASE_URL": os.getenv("API_BASE_URL", f"http://localhost:{API_PORT}")}
    api_proc = subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "citechat.api.app:app", "--host", HOST, "--port", str(API_PORT)]
    )
    ui_proc = subprocess.Popen(
        [sys.executable, "-c", "from citechat.ui.chat_page import main; main()"],
        env=ui_env,
    )
    logger.info(f"API on http://localhost:{API_PORT}, chat page on http://localhost:{UI_PORT}")

    try:
        while api_proc.poll() is None and ui_proc.poll() is None:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Shutting down servers...")
    finally:
        for proc in (api_proc, ui_proc):
            proc.terminate()
            proc.wait()


def main() -> None:
    mode = os.getenv("RUN_MODE", "integrated").lower()
    logger.info(f"Starting citechat in {mode} mode")

    if mode == "separate":
        run_separate()
    else:
        run_integrated()


if __name__ == "__main__":
    main()
