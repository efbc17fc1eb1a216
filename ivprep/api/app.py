"""
Flask application factory and server entry-point.
"""

import logging
import os
import sys
import traceback
from typing import Optional

from flask import Flask
from flask_cors import CORS

from ivprep.api.routes import register_routes
from ivprep.commands import CommandSurface
from ivprep.config import LOG_LEVEL, TOKEN_EXPIRY_HOURS, get_env
from ivprep.database import Store
from ivprep.errors import StorageError


def create_app(store: Optional[Store] = None):
    """Build and return a fully configured Flask application."""
    app = Flask(__name__)
    CORS(app)

    # ── Open the record store ────────────────────────────────────────
    if store is None:
        store = Store()
    if not store.is_open:
        try:
            print(f"[init] Opening database at {store.db_path}...")
            store.open()
            print("[init] ✓ Database ready")
        except StorageError as e:
            print(f"[FATAL] Failed to initialize: {e}", file=sys.stderr)
            traceback.print_exc()
            sys.exit(1)

    surface = CommandSurface(store)
    app.extensions["ivprep.store"] = store
    app.extensions["ivprep.surface"] = surface

    # ── Register routes ──────────────────────────────────────────────
    register_routes(app, surface)

    return app


def main():
    """Run the development server."""
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    print("=" * 60)
    print("IV Preparation Manager – REST API Server")
    print("=" * 60)

    host = os.getenv("API_HOST", "127.0.0.1")
    port = int(os.getenv("API_PORT", "8000"))
    debug = os.getenv("FLASK_ENV") == "development"
    if not debug:
        # Outside development the signing key must come from the environment
        get_env("JWT_SECRET_KEY")

    app = create_app()

    print(f"\n[server] Starting Flask API on {host}:{port}")
    print(f"[server] Debug mode: {debug}")
    print(f"[server] Session expiry: {TOKEN_EXPIRY_HOURS} hours")
    print("\nAPI Endpoints:")
    print(f"  - POST http://{host}:{port}/api/auth/login")
    print(f"  - POST http://{host}:{port}/api/commands/<name>")
    print(f"  - GET  http://{host}:{port}/api/user/profile")
    print(f"  - POST http://{host}:{port}/api/auth/logout")
    print(f"  - GET  http://{host}:{port}/health")
    print("\n" + "=" * 60)

    try:
        app.run(host=host, port=port, debug=debug)
    finally:
        app.extensions["ivprep.store"].close()


if __name__ == "__main__":
    main()
