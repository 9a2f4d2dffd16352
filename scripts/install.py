#!/usr/bin/env python3
# =============================================================================
# scripts/install.py - Installation Hook
# =============================================================================
# Generates the secrets the API needs and stores them in .env:
#   JWT_SECRET  256-bit hex signing secret
#   API_KEY     shared key for POST /auth/token
#
# Existing values are never overwritten, and the signing secret is never
# printed.
#
# Usage:
#   python scripts/install.py
#   python scripts/install.py --env-file /etc/storefront/.env
# =============================================================================

import argparse
import logging
import secrets
from pathlib import Path

from dotenv import dotenv_values, set_key

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent

# 32 bytes = 256 bits
SECRET_BYTES = 32


def generate_secrets(env_file: Path) -> list[str]:
    """
    Add JWT_SECRET and API_KEY to env_file when they are missing or empty.

    Args:
        env_file: Path of the dotenv file (created if absent)

    Returns:
        Names of the keys that were written
    """
    env_file.touch(mode=0o600, exist_ok=True)
    current = dotenv_values(env_file)

    generated = {
        "JWT_SECRET": lambda: secrets.token_hex(SECRET_BYTES),
        "API_KEY": lambda: f"changeme_{secrets.token_hex(16)}",
    }

    written = []
    for key, make in generated.items():
        if current.get(key):
            continue
        set_key(str(env_file), key, make(), quote_mode="never")
        written.append(key)
    return written


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Generate API secrets into a .env file")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=PROJECT_ROOT / ".env",
        help="dotenv file to update (default: project root .env)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s - %(message)s")

    written = generate_secrets(args.env_file)
    if written:
        logger.info(f"Wrote {', '.join(written)} to {args.env_file}")
    else:
        logger.info(f"{args.env_file} already has JWT_SECRET and API_KEY; nothing to do")
    if "API_KEY" in written:
        logger.info("Replace the generated API_KEY before exposing the API")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
