#!/usr/bin/env python3
"""
Generate the signing secret for checkup portal tokens.
Run this and copy the output to your .env file; the server refuses to start
outside development mode without it.
"""

import secrets


def generate_secret_key(nbytes: int = 32) -> str:
    return secrets.token_hex(nbytes)


if __name__ == "__main__":
    print("=" * 60)
    print("Checkup Portal Token Secret")
    print("=" * 60)

    print(f"\nJWT_SECRET_KEY={generate_secret_key()}")
    print("\n" + "=" * 60)
    print("Add the line above to .env before starting api_server.py")
    print("=" * 60)
