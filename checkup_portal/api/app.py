"""
Flask application factory and server entry-point.
"""

import os
import sys
import traceback

from flask import Flask
from flask_cors import CORS

from checkup_portal.blobstore import LocalBlobStore
from checkup_portal.config import MAX_UPLOAD_BYTES, SECRET_KEY, TOKEN_EXPIRY_HOURS, get_env
from checkup_portal.database import init_engine
from checkup_portal.api.routes import register_routes


def create_app(engine=None, blob_store=None, secret_key=None):
    """Build and return a fully configured Flask application."""
    app = Flask(__name__)
    CORS(app)
    app.config["JWT_SECRET_KEY"] = secret_key or SECRET_KEY
    app.config["MAX_CONTENT_LENGTH"] = MAX_UPLOAD_BYTES

    # ── Initialise shared resources ──────────────────────────────────
    try:
        if engine is None:
            print("[init] Initializing database connection...")
            engine = init_engine()

        if blob_store is None:
            print("[init] Initializing upload storage...")
            blob_store = LocalBlobStore()

        print("[init] ✓ API server ready")
    except Exception as e:
        print(f"[FATAL] Failed to initialize: {e}", file=sys.stderr)
        traceback.print_exc()
        sys.exit(1)

    # ── Register routes ──────────────────────────────────────────────
    register_routes(app, engine, blob_store)

    return app


def main():
    """Run the development server."""
    print("=" * 60)
    print("Dental Checkup Portal – REST API Server")
    print("=" * 60)

    debug = os.getenv("FLASK_ENV") == "development"
    secret_key = None if debug else get_env("JWT_SECRET_KEY")

    app = create_app(secret_key=secret_key)

    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))

    print(f"\n[server] Starting Flask API on {host}:{port}")
    print(f"[server] Debug mode: {debug}")
    print(f"[server] CORS enabled: True")
    print(f"[server] Token expiry: {TOKEN_EXPIRY_HOURS} hours")
    print("\nAPI Endpoints:")
    print(f"  - POST http://{host}:{port}/api/user/signup")
    print(f"  - POST http://{host}:{port}/api/user/login")
    print(f"  - POST http://{host}:{port}/api/dentists/signup")
    print(f"  - POST http://{host}:{port}/api/dentists/login")
    print(f"  - GET  http://{host}:{port}/api/dentists")
    print(f"  - POST http://{host}:{port}/api/checkup-requests")
    print(f"  - GET  http://{host}:{port}/api/checkup-requests")
    print(f"  - GET  http://{host}:{port}/api/dentist/checkup-requests")
    print(f"  - POST http://{host}:{port}/api/dentist/upload-result/<request_id>")
    print(f"  - GET  http://{host}:{port}/api/checkup-results/<request_id>")
    print(f"  - GET  http://{host}:{port}/health")
    print("\n" + "=" * 60)

    app.run(host=host, port=port, debug=debug, threaded=True)


if __name__ == "__main__":
    main()
