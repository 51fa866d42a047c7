#!/usr/bin/env python3
"""
textfix - Development Launcher

Usage:
    python run.py                    # Serve on 127.0.0.1:8000 with auto-reload
    python run.py --host 0.0.0.0     # Network accessible
    python run.py --no-reload        # Production-style single process
    python run.py --check-only       # Print provider configuration and exit

Environment Variables:
    - LLM_PROVIDER: gemini (default), nvidia_nim, ollama or vllm
    - GEMINI_API_KEY: Required for the gemini provider (warning only)
    - OPENAI_COMPAT_BASE_URL / OPENAI_COMPAT_API_KEY: for the other providers
"""

import argparse
import sys

import uvicorn

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


def create_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Start the textfix API server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--host", default=DEFAULT_HOST, help=f"Bind address (default: {DEFAULT_HOST})")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help=f"Port (default: {DEFAULT_PORT})")
    parser.add_argument("--no-reload", action="store_true", help="Disable auto-reload")
    parser.add_argument("--check-only", action="store_true", help="Check configuration and exit")
    return parser


def check_configuration() -> int:
    """Print the resolved provider config; non-zero exit if unusable."""
    from textfix.config import settings
    from textfix.services.llm_client import get_system_default_config

    cfg = get_system_default_config()
    print(f"Provider:  {cfg.provider.value}")
    print(f"Model:     {cfg.model}")
    print(f"Base URL:  {cfg.base_url}")
    print(f"API key:   {'set' if cfg.api_key else 'missing'}")
    print(f"Fallback:  {'enabled' if settings.fallback_enabled else 'disabled'}")
    if cfg.needs_api_key and not cfg.api_key:
        print("Warning: no API key, every check will use the fallback typo table.")
        return 1
    return 0


def main() -> int:
    args = create_argument_parser().parse_args()
    if args.check_only:
        return check_configuration()

    uvicorn.run(
        "textfix.main:app",
        host=args.host,
        port=args.port,
        reload=not args.no_reload,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
