#!/usr/bin/env python3
"""
Store a refresh token (generated in the Questrade API hub) as the credential.
The next sync exchanges it for an access token.

Usage:
    python scripts/set_refresh_token.py TOKEN
"""
from pathlib import Path
import argparse
import os
import sys

# Ensure repo root is on sys.path and is the working directory.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
os.chdir(ROOT)

from qtmon.auth import RefreshTokenAuth, save_auth
from qtmon.config import load_settings

if __name__ == '__main__':
    parser = argparse.ArgumentParser(description="Write a refresh-token-only credential file.")
    parser.add_argument("token", help="Questrade refresh token")
    args = parser.parse_args()
    settings = load_settings()
    save_auth(settings.auth_path, RefreshTokenAuth(refresh_token=args.token.strip()))
    print('Credential written to', settings.auth_path)
