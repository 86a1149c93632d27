# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
AI Gateway Key Proxy - Main entry point.

This module handles:
- CLI argument parsing
- .env loading
- Logging configuration
- Application startup

The actual FastAPI application is created via app_factory.create_app().
"""

import argparse
import logging
import os
import sys
import time
from pathlib import Path
from typing import List, Optional

import colorlog
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel

from gateway_rotator import GatewayConfig, __version__, mask_credential
from gateway_rotator.config import LIB_LOGGER_NAME

_console = Console()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="AI Gateway Key Proxy Server")
    parser.add_argument(
        "--host", type=str, default="0.0.0.0", help="Host to bind the server to."
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("PORT", "3001")),
        help="Port to run the server on.",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for log files (default: $LOG_DIR or ./logs).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Show debug output on the console.",
    )
    return parser.parse_args(argv)


def load_env_files(root_dir: Path) -> List[Path]:
    """Load .env, then any other *.env files in root_dir without overriding."""
    load_dotenv(root_dir / ".env")

    env_files = sorted(root_dir.glob("*.env"))
    for env_file in env_files:
        if env_file.name != ".env":
            load_dotenv(env_file, override=False)
    return env_files


class LibraryDebugFilter(logging.Filter):
    def filter(self, record):
        return record.levelno == logging.DEBUG and record.name.startswith(LIB_LOGGER_NAME)


class NoLiteLLMLogFilter(logging.Filter):
    def filter(self, record):
        return not record.name.startswith("LiteLLM")


def configure_logging(log_dir: Path, debug: bool = False) -> None:
    """Colored console output plus proxy.log and a library debug log."""
    log_dir.mkdir(parents=True, exist_ok=True)

    console_handler = colorlog.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s%(message)s",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    )
    console_handler.addFilter(NoLiteLLMLogFilter())

    file_format = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    info_file_handler = logging.FileHandler(log_dir / "proxy.log", encoding="utf-8")
    info_file_handler.setLevel(logging.INFO)
    info_file_handler.setFormatter(file_format)

    debug_file_handler = logging.FileHandler(log_dir / "proxy_debug.log", encoding="utf-8")
    debug_file_handler.setLevel(logging.DEBUG)
    debug_file_handler.setFormatter(file_format)
    debug_file_handler.addFilter(LibraryDebugFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(info_file_handler)
    root_logger.addHandler(console_handler)
    root_logger.addHandler(debug_file_handler)

    # Silence noisy loggers
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)

    # Isolate LiteLLM's logger
    litellm_logger = logging.getLogger("LiteLLM")
    litellm_logger.handlers = []
    litellm_logger.propagate = False


def print_banner(args: argparse.Namespace, config: GatewayConfig, elapsed: float) -> None:
    if config.auth_key:
        key_display = f"[green]✓[/green] {mask_credential(config.auth_key)}"
    else:
        key_display = "[red]✗ Not Set (INSECURE - anyone can access!)[/red]"

    _console.print(
        Panel.fit(
            f"[bold cyan]AI Gateway Key Proxy v{__version__}[/bold cyan]\n"
            f"Listening on {args.host}:{args.port}\n"
            f"Upstream: {config.upstream_openai_base_url}\n"
            f"Keys file: {config.keys_file}\n"
            f"Auth key: {key_display}\n"
            f"[dim]Ready in {elapsed:.2f}s[/dim]",
            border_style="cyan",
        )
    )


def main(argv: Optional[List[str]] = None) -> None:
    start_time = time.time()
    args = parse_args(argv)

    root_dir = Path.cwd()
    env_files = load_env_files(root_dir)
    if env_files:
        _console.print(
            f"📁 Loaded {len(env_files)} .env file(s): "
            f"{', '.join(f.name for f in env_files)}"
        )

    log_dir = args.log_dir or Path(os.getenv("LOG_DIR", root_dir / "logs"))
    configure_logging(log_dir, debug=args.debug)

    config = GatewayConfig.from_env(os.environ)

    with _console.status("[dim]Loading server components...", spinner="dots"):
        import uvicorn

        from gateway_proxy.app_factory import create_app

        app = create_app(config)

    print_banner(args, config, time.time() - start_time)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
