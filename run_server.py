#!/usr/bin/env python
"""
Server Entry Point

Starts the Sales Metrics API.
Usage:
    Development:  python run_server.py --dev
    Production:   python run_server.py
    Gunicorn:     python run_server.py --gunicorn
                  (or: gunicorn src.main:app -c gunicorn.conf.py)
"""

import argparse
import os
import subprocess
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from src.config import get_settings  # noqa: E402


def run_dev_server(host: str, port: int) -> None:
    """Run development server with auto-reload."""
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=host,
        port=port,
        reload=True,
        reload_dirs=["src"],
        log_level="debug",
    )


def run_prod_server(host: str, port: int) -> None:
    """Run production server with Uvicorn workers."""
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=host,
        port=port,
        workers=int(os.getenv("WORKERS", 4)),
        log_level=get_settings().monitoring.log_level.lower(),
        proxy_headers=True,
        forwarded_allow_ips="*",
        server_header=False,
    )


def run_gunicorn(host: str, port: int) -> int:
    """Run with Gunicorn (recommended for production)."""
    env = dict(os.environ, BIND=f"{host}:{port}")
    return subprocess.run(["gunicorn", "src.main:app", "-c", "gunicorn.conf.py"], env=env).returncode


if __name__ == "__main__":
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Sales Metrics API Server")
    parser.add_argument("--dev", action="store_true", help="Run in development mode with auto-reload")
    parser.add_argument("--gunicorn", action="store_true", help="Run with Gunicorn (production)")
    parser.add_argument("--host", default=settings.api_host, help=f"Bind host (default: {settings.api_host})")
    parser.add_argument("--port", type=int, default=settings.api_port, help=f"Port (default: {settings.api_port})")
    args = parser.parse_args()

    if args.dev:
        print("🚀 Starting development server...")
        run_dev_server(args.host, args.port)
    elif args.gunicorn:
        print("🚀 Starting production server with Gunicorn...")
        sys.exit(run_gunicorn(args.host, args.port))
    else:
        print("🚀 Starting production server with Uvicorn...")
        run_prod_server(args.host, args.port)
