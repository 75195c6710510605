#!/usr/bin/env python3
"""
Generate an RSA key pair and mint access tokens for local development.

The API only validates tokens; in production they come from the identity
service. Usage:

    python -m land_api.scripts.dev_tokens citizen-1
    python -m land_api.scripts.dev_tokens admin-1 land:admin land:decide ledger:write
"""

import os
import sys
import uuid
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Tuple

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa


def generate_key_pair() -> Tuple[str, str]:
    """Generate an RSA key pair as (private PEM, public PEM)."""
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048
    )

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


def issue_token(
    private_key: str,
    user_id: str,
    permissions: Iterable[str] = (),
    email: Optional[str] = None,
    name: Optional[str] = None,
    expires_in: timedelta = timedelta(minutes=15),
    token_type: str = "access",
    algorithm: str = "RS256"
) -> str:
    """Sign an access token carrying the given permissions."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "email": email,
        "name": name,
        "permissions": list(permissions),
        "iat": now,
        "exp": now + expires_in,
        "jti": uuid.uuid4().hex,
        "type": token_type
    }
    return jwt.encode(payload, private_key, algorithm=algorithm)


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("usage: dev_tokens.py USER_ID [PERMISSION ...]")
        sys.exit(2)

    private_pem = os.getenv("JWT_PRIVATE_KEY", "").replace("\\n", "\n")
    public_pem = None
    if not private_pem:
        private_pem, public_pem = generate_key_pair()

    token = issue_token(private_pem, sys.argv[1], sys.argv[2:])

    if public_pem:
        newline = "\\n"
        print("=== Environment Variables ===")
        print(f'JWT_PRIVATE_KEY="{private_pem.replace(chr(10), newline)}"')
        print(f'JWT_PUBLIC_KEY="{public_pem.replace(chr(10), newline)}"')
        print()
    print(token)
