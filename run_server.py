#!/usr/bin/env python3
"""
Startup script for the CleanCare API.

Usage:
    # Run with the DATABASE_URL from the environment or .env
    python run_server.py

    # Run against a local SQLite file on a custom port
    python run_server.py --database sqlite:///./data/cleancare.db --port 8001

    # Seed the service catalog first, with reload for development
    python run_server.py --seed --reload
"""

import argparse
import os
import sys

from dotenv import load_dotenv


def ensure_sqlite_dir(database_url: str) -> None:
    if database_url.startswith("sqlite:///./"):
        db_dir = os.path.dirname(database_url.replace("sqlite:///./", ""))
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)


def main():
    parser = argparse.ArgumentParser(description="Run the CleanCare API server")
    parser.add_argument(
        "--database",
        "-d",
        help="SQLAlchemy database URL (overrides DATABASE_URL)",
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host to bind to (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        "-p",
        type=int,
        default=int(os.getenv("PORT", "8000")),
        help="Port to run on (default: $PORT or 8000)",
    )
    parser.add_argument(
        "--seed",
        action="store_true",
        help="Write the default service catalog into an empty database first",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )
    args = parser.parse_args()

    load_dotenv()
    if args.database:
        os.environ["DATABASE_URL"] = args.database

    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        print("Error: set DATABASE_URL or pass --database")
        sys.exit(1)

    ensure_sqlite_dir(database_url)

    print(f"\n{'=' * 50}")
    print("Starting: CleanCare Pro API")
    print(f"Port:     {args.port}")
    print(f"Database: {database_url}")
    print(f"{'=' * 50}\n")

    if args.seed:
        from cleancare.seed_catalog import main as seed
        seed()

    import uvicorn

    uvicorn.run(
        "cleancare.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
