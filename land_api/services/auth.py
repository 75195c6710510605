# SPDX-License-Identifier: Apache-2.0

"""
Bearer token validation service.

Tokens are issued by the identity service in front of this API; this module
only verifies signatures, expiry and token type, and extracts the identifiers
used by the blocklist.
"""

import os
import jwt
from typing import Optional, Dict, Any
from cryptography.hazmat.primitives import serialization
from opentelemetry import trace
import logging

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class TokenValidationError(Exception):
    """Raised when token validation fails."""
    pass


class AuthService:
    """
    JWT validation service.

    RS256 with a PEM public key is the production setup. HMAC algorithms are
    accepted with a shared secret for local development.
    """

    def __init__(
        self,
        public_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        secret: Optional[str] = None
    ):
        """
        Initialize the token validation service.

        Args:
            public_key: RS256 public key for token verification (PEM format)
            algorithm: JWT signing algorithm
            secret: Shared secret for HMAC algorithms
        """
        self.algorithm = algorithm or os.getenv("JWT_ALGORITHM", "RS256")

        if self.algorithm.startswith("HS"):
            self.verification_key = secret or os.getenv("JWT_SECRET", "")
            if not self.verification_key:
                raise ValueError("JWT_SECRET is required for HMAC token validation")
        else:
            pem = public_key or os.getenv("JWT_PUBLIC_KEY", "")
            if not pem:
                raise ValueError("JWT_PUBLIC_KEY is required for RS256 token validation")
            self.verification_key = self._load_public_key(pem)

    @staticmethod
    def _load_public_key(pem: str):
        """Parse the PEM public key once so malformed keys fail at startup."""
        try:
            return serialization.load_pem_public_key(pem.encode("utf-8"))
        except ValueError as e:
            logger.error(f"Invalid JWT public key: {str(e)}")
            raise

    def validate_token(self, token: str, token_type: str = "access") -> Dict[str, Any]:
        """
        Validate and decode a JWT token.

        Args:
            token: JWT token string to validate
            token_type: Expected token type

        Returns:
            Decoded token payload

        Raises:
            TokenValidationError: If token is invalid or expired
        """
        with tracer.start_as_current_span("auth.validate_token") as span:
            span.set_attributes({
                "auth.operation": "validate_token",
                "auth.token_type": token_type
            })

            try:
                payload = jwt.decode(
                    token,
                    self.verification_key,
                    algorithms=[self.algorithm],
                    options={"verify_exp": True, "require": ["sub", "exp"]}
                )
            except jwt.ExpiredSignatureError:
                span.set_attribute("auth.validation_result", "expired")
                logger.warning("Token validation failed: token expired")
                raise TokenValidationError("Token has expired")
            except jwt.InvalidTokenError as e:
                span.set_attribute("auth.validation_result", "invalid")
                logger.warning(f"Token validation failed: {str(e)}")
                raise TokenValidationError(f"Invalid token: {str(e)}")

            if payload.get("type", "access") != token_type:
                span.set_attribute("auth.validation_result", "wrong_type")
                raise TokenValidationError(f"Invalid token type. Expected {token_type}")

            span.set_attributes({
                "auth.validation_result": "success",
                "user.id": str(payload.get("sub"))
            })
            logger.debug(
                "Token validated successfully",
                extra={"user_id": payload.get("sub"), "token_type": token_type}
            )
            return payload

    def extract_token_id(self, token: str) -> str:
        """
        Extract a unique identifier from a token for blocklist purposes.

        Args:
            token: JWT token string

        Returns:
            The jti claim, or a composite of subject, issue time and type
        """
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError as e:
            logger.error(f"Failed to extract token ID: {str(e)}")
            raise TokenValidationError(f"Invalid token format: {str(e)}")

        if payload.get("jti"):
            return str(payload["jti"])
        return f"{payload.get('sub')}:{payload.get('iat')}:{payload.get('type')}"
