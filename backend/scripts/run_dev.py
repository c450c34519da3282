#!/usr/bin/env python3
"""Development server runner for the Auth Relay.

Starts uvicorn in-process on ``PORT`` (default 3000) with debug logging, a
summary of which external integrations are configured and auto-reload
(``RELAY_RELOAD``, defaulted on here; ``--no-reload`` wins).
"""

import argparse
import os
import sys
from pathlib import Path

backend_root = Path(__file__).parent.parent
src_path = backend_root / "src"
sys.path.insert(0, str(src_path))


def setup_dev_environment() -> None:
    """Set development defaults without clobbering explicit overrides."""
    os.environ.setdefault("RELAY_ENVIRONMENT", "development")
    os.environ.setdefault("RELAY_DEBUG", "true")
    os.environ.setdefault("RELAY_LOG_LEVEL", "DEBUG")
    os.environ.setdefault("RELAY_RELOAD", "true")


def describe_integrations() -> None:
    from authrelay.core.config import get_settings_instance

    settings = get_settings_instance()
    firebase_configured = bool(settings.firebase_service_account_json or settings.firebase_service_account_file)

    print("Auth Relay development server")
    print(f"  Google OAuth:        {'configured' if settings.google_oauth_enabled else 'missing credentials'}")
    print(f"  Firebase directory:  {'configured' if firebase_configured else 'fallback only'}")
    print(f"  Auth handler proxy:  {settings.auth_handler_upstream or 'disabled'}")
    print(f"  Deep link scheme:    {settings.app_scheme}://auth/callback")
    print(f"  State enforcement:   {'on' if settings.enforce_state else 'off'}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the Auth Relay with auto-reload")
    parser.add_argument("--host", help="Bind address (default: RELAY_API_HOST)")
    parser.add_argument("--port", type=int, help="Bind port (default: PORT)")
    parser.add_argument("--no-reload", action="store_true", help="Disable auto-reload (overrides RELAY_RELOAD)")
    args = parser.parse_args()

    setup_dev_environment()
    describe_integrations()

    import uvicorn

    from authrelay.core.config import get_settings_instance

    settings = get_settings_instance()
    host = args.host or settings.api_host
    port = args.port or settings.api_port
    print(f"Listening on http://{host}:{port} (Ctrl+C to stop)")

    uvicorn.run(
        "authrelay.main:app",
        host=host,
        port=port,
        app_dir=str(src_path),
        reload=settings.reload and not args.no_reload,
        reload_dirs=[str(src_path)],
        # authrelay.core.logging owns the handlers so uvicorn lines are redacted too
        log_config=None,
    )


if __name__ == "__main__":
    main()
