#!/usr/bin/env python3
# SPDX-License-Identifier: Apache-2.0

"""
Generate an RS256 key pair for signing access tokens.

Prints the keys as JWT_PRIVATE_KEY / JWT_PUBLIC_KEY lines so every API
instance can share them instead of generating its own dev pair.
"""

import argparse
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa


def generate_jwt_keys(key_size: int = 2048):
    """Generate RSA key pair for JWT signing."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    ).decode('utf-8')

    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode('utf-8')

    return private_pem, public_pem


def to_env_lines(private_pem: str, public_pem: str):
    """Single-line env assignments with escaped newlines."""
    return [
        'JWT_PRIVATE_KEY="{}"'.format(private_pem.strip().replace("\n", "\\n")),
        'JWT_PUBLIC_KEY="{}"'.format(public_pem.strip().replace("\n", "\\n")),
    ]


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--key-size", type=int, default=2048)
    parser.add_argument("--env-file", help="Append the assignments to this file instead of printing them")
    args = parser.parse_args()

    lines = to_env_lines(*generate_jwt_keys(args.key_size))

    if args.env_file:
        with open(args.env_file, "a", encoding="utf-8") as handle:
            handle.write("\n".join(lines) + "\n")
        print(f"Wrote JWT keys to {args.env_file}")
    else:
        print("\n".join(lines))


if __name__ == "__main__":
    main()
