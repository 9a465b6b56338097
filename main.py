#!/usr/bin/env python3
"""
Gatekeeper - OAuth2 login service.
Signs users in with an external identity provider and keeps them in a signed cookie session.
"""

import argparse
import logging
import sys

from dotenv import load_dotenv

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)

logger = logging.getLogger(__name__)


def check_config() -> int:
    """Validate configuration without starting the server. Never prints secrets."""
    from gatekeeper.auth.config import load_auth_config
    from gatekeeper.auth.errors import ConfigurationError

    try:
        cfg = load_auth_config()
    except ConfigurationError as e:
        print(f"Configuration invalid: {e}", file=sys.stderr)
        return 1

    print("Configuration OK")
    print(f"   Client ID: {cfg.credentials.client_id}")
    print(f"   Redirect URI: {cfg.credentials.redirect_uri}")
    print(f"   Profile redirect: {cfg.profile_redirect_url}")
    print(f"   Session TTL: {cfg.session_ttl_seconds}s (cookie={cfg.cookie_name}, secure={cfg.cookie_secure})")
    return 0


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="OAuth2 login service with signed cookie sessions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Check that all required environment variables are set
  python main.py --check-config

  # Run the HTTP server
  python main.py --serve --port 3000
        """,
    )
    parser.add_argument("--serve", action="store_true", help="Run the HTTP login server")
    parser.add_argument("--check-config", action="store_true", help="Validate configuration and exit")
    parser.add_argument("--host", default="0.0.0.0", help="Server bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=3000, help="Server listen port (default: 3000)")
    parser.add_argument("--env-file", default=".env", help="Load environment variables from this file (default: .env)")

    args = parser.parse_args()

    # Real environment wins over the file.
    load_dotenv(dotenv_path=args.env_file, override=False)

    if args.check_config:
        sys.exit(check_config())

    if args.serve:
        from gatekeeper.api.server import run as run_server

        try:
            run_server(host=args.host, port=args.port)
        except Exception as e:
            print(f"Error starting server: {e}", file=sys.stderr)
            raise
        return

    parser.print_help()


if __name__ == "__main__":
    main()
