#!/usr/bin/env python3
"""Run the signal inference API server.

This script loads ``.env``, then starts uvicorn with the application factory.

Usage:
    python scripts/run_api.py [--host HOST] [--port PORT]

Environment:
    PRIVATE_KEY - Required. Wallet key handed to the broker factory.
    BROKER_FACTORY - Required. ``module:callable`` that builds the compute broker.
    PORT - Optional. Listen port (default: 3001).

Examples:
    python scripts/run_api.py
    python scripts/run_api.py --host 0.0.0.0 --port 3001
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Ensure imports work when invoked as a script
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from core.config import InferenceSettings  # noqa: E402


def main() -> int:
    """Run the API server."""
    load_dotenv()

    try:
        settings = InferenceSettings.from_env()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    parser = argparse.ArgumentParser(description="Run the signal inference API server.")
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help=f"Port to bind to (default: {settings.port})",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )
    args = parser.parse_args()

    if not settings.private_key:
        print("Error: PRIVATE_KEY environment variable is required", file=sys.stderr)
        return 1
    if not settings.broker_factory:
        print("Error: BROKER_FACTORY environment variable is required", file=sys.stderr)
        return 1

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    print(f"Starting signal inference server on {args.host}:{args.port}")
    print("Endpoints:")
    print(f"  - POST http://{args.host}:{args.port}/infer")
    print(f"  - POST http://{args.host}:{args.port}/api/summarize")
    print(f"  - GET  http://{args.host}:{args.port}/health")
    print()

    import uvicorn

    uvicorn.run(
        "api.main:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )

    return 0


if __name__ == "__main__":
    sys.exit(main())
