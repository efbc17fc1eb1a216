#!/usr/bin/env python3
"""
Generate a JWT signing key and a bootstrap admin password for a new install.
Run this and copy the output to your .env file.
"""

import secrets

if __name__ == "__main__":
    print("=" * 60)
    print("IV Preparation Manager – .env secrets")
    print("=" * 60)
    print("\nGenerating secure random values...\n")

    print(f"JWT_SECRET_KEY={secrets.token_hex(32)}")
    print(f"BOOTSTRAP_ADMIN_PASSWORD={secrets.token_urlsafe(12)}")
    print("\n" + "=" * 60)
    print("Copy the lines above to your .env file before the first start;")
    print("the admin password only applies when the database is created.")
    print("=" * 60)
