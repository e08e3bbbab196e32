"""Production entry point: create the per-source SQLite files, then exec gunicorn.

gunicorn runs a single worker because the title cache and the refresh
scheduler live inside the process; a second worker would crawl twice.
"""

import logging
import os
import subprocess
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

LOGGER = logging.getLogger("start_web")


def _env_flag(name):
    return (os.getenv(name) or "").strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_text(name, default):
    return (os.getenv(name) or "").strip() or default


def prepare_databases(runner=None):
    """Run init_db.py from the project root unless SKIP_DB_INIT is set.

    Returns True when the schemas were (re)created. A failing init raises
    CalledProcessError so the server never starts against missing tables.
    """
    if _env_flag("SKIP_DB_INIT"):
        LOGGER.info("SKIP_DB_INIT is set; leaving the source databases untouched.")
        return False
    runner = runner or subprocess.run
    LOGGER.info("Creating source databases under %s", PROJECT_ROOT)
    runner([sys.executable, str(PROJECT_ROOT / "init_db.py")], check=True, cwd=str(PROJECT_ROOT))
    return True


def gunicorn_argv():
    bind = _env_text("GUNICORN_BIND", f"0.0.0.0:{_env_text('PORT', '5000')}")
    return [
        "gunicorn",
        "app:create_app()",
        "--chdir",
        str(PROJECT_ROOT),
        "--bind",
        bind,
        "--workers",
        "1",
        "--threads",
        _env_text("GUNICORN_THREADS", "4"),
        "--timeout",
        _env_text("GUNICORN_TIMEOUT", "120"),
    ]


def main(exec_fn=None):
    logging.basicConfig(level=logging.INFO, format="[startup] %(message)s")
    prepare_databases()
    argv = gunicorn_argv()
    LOGGER.info("Starting web server: %s", " ".join(argv))
    (exec_fn or os.execvp)(argv[0], argv)


if __name__ == "__main__":
    main()
