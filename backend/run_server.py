#!/usr/bin/env python3
"""Standalone entry point for the Scope backend.

Accepts --port, --host, --data-dir and --backend CLI args and sets
environment variables BEFORE importing any scope modules (so
pydantic-settings picks them up).
"""

import argparse
import os


def main():
    parser = argparse.ArgumentParser(description="Scope Backend Server")
    parser.add_argument("--port", type=int, default=9876, help="Port to listen on")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Directory for the local database and media files (default: cwd)",
    )
    parser.add_argument(
        "--backend",
        choices=["sql", "supabase"],
        default=None,
        help="Data backend (default: DATA_BACKEND env or sql)",
    )
    args = parser.parse_args()

    data_dir = args.data_dir or os.getcwd()
    os.makedirs(data_dir, exist_ok=True)

    # Set env vars BEFORE any scope imports so pydantic Settings reads them
    os.environ["API_PORT"] = str(args.port)
    os.environ["API_HOST"] = args.host
    os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{os.path.join(data_dir, 'scope.db')}")
    os.environ.setdefault("MEDIA_DIR", os.path.join(data_dir, "media"))
    if args.backend:
        os.environ["DATA_BACKEND"] = args.backend

    import uvicorn

    uvicorn.run(
        "scope.main:app",
        host=args.host,
        port=args.port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
