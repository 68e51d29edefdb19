"""
Compact signed tokens (JWT, HS256) for WebSocket connection authentication.

Tokens are built by hand so the output is byte-for-byte predictable:
header and claims are serialized compactly in the order given, and every
segment is base64url encoded without padding. Verification goes through
PyJWT, which is what a standard consumer would use.
"""

import base64
import hashlib
import hmac
import json
from typing import Any, Dict, Mapping, Optional, Union

import jwt

from ..utils.logging import get_logger
from ..utils.errors import CryptoError, EncodingError
from ..utils.config import DEFAULT_TOKEN_EXPIRY

logger = get_logger("ws-loadkit.auth.token")

ALGORITHM = "HS256"
HEADER = {"typ": "JWT", "alg": ALGORITHM}

Secret = Union[str, bytes]


def b64url_encode(data: bytes) -> str:
    """Base64 with the URL-safe alphabet and no `=` padding."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _to_json_bytes(value: Any) -> bytes:
    return json.dumps(
        value,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def _secret_bytes(secret: Optional[Secret]) -> bytes:
    if secret is None:
        raise CryptoError("Signing secret is missing")
    if isinstance(secret, str):
        secret = secret.encode("utf-8")
    elif not isinstance(secret, (bytes, bytearray)):
        raise CryptoError(
            f"Signing secret must be str or bytes, got {type(secret).__name__}"
        )
    if not secret:
        raise CryptoError("Signing secret is empty")
    return bytes(secret)


def sign_hmac(data: str, secret: Secret) -> str:
    """
    Sign data with HMAC-SHA-256.

    Args:
        data: Signing input
        secret: Shared secret

    Returns:
        URL-safe, unpadded base64 signature

    Raises:
        CryptoError: If the secret is unusable or SHA-256 is unavailable
    """
    key = _secret_bytes(secret)

    try:
        digest = hmac.new(key, data.encode("utf-8"), hashlib.sha256).digest()
    except ValueError as e:
        raise CryptoError(f"HMAC-SHA-256 unavailable: {e}", cause=e) from e

    encoded = base64.b64encode(digest).decode("ascii")
    return encoded.replace("+", "-").replace("/", "_").replace("=", "")


def generate_token(claims: Mapping[str, Any], secret: Secret) -> str:
    """
    Build a signed compact token.

    Args:
        claims: JSON-serializable claims; key order is kept
        secret: Shared HMAC secret

    Returns:
        `header.claims.signature`, each segment base64url encoded

    Raises:
        EncodingError: If claims cannot be serialized to JSON
        CryptoError: If the secret is missing or empty
    """
    if not isinstance(claims, Mapping):
        raise EncodingError(
            f"Claims must be a mapping, got {type(claims).__name__}"
        )

    try:
        payload = _to_json_bytes(dict(claims))
    except (TypeError, ValueError) as e:
        raise EncodingError(f"Claims are not JSON serializable: {e}", cause=e) from e

    signing_input = f"{b64url_encode(_to_json_bytes(HEADER))}.{b64url_encode(payload)}"
    return f"{signing_input}.{sign_hmac(signing_input, secret)}"


class CompactTokenSigner:
    """Signs claims with a fixed secret."""

    def __init__(self, secret: Secret):
        # Fail at construction rather than on first use
        _secret_bytes(secret)
        self._secret = secret

    def sign(self, claims: Mapping[str, Any]) -> str:
        return generate_token(claims, self._secret)

    __call__ = sign


class TokenAuth:
    """Issues and checks connection tokens for virtual users."""

    def __init__(self, secret_key: Secret, token_expiry: int = DEFAULT_TOKEN_EXPIRY):
        """Initialize authentication handler.

        Args:
            secret_key: Secret key for token signing
            token_expiry: Default `exp` claim, seconds since the epoch
        """
        self.signer = CompactTokenSigner(secret_key)
        self.secret_key = secret_key
        self.token_expiry = token_expiry
        self.algorithm = ALGORITHM

    def issue_token(self, user_id: str, expires_at: Optional[int] = None, **kwargs) -> str:
        """Generate a token for a connecting user.

        Args:
            user_id: Subject claim
            expires_at: Expiry override, seconds since the epoch
            **kwargs: Additional claims to include in token

        Returns:
            Token string
        """
        claims = {
            'sub': user_id,
            'exp': self.token_expiry if expires_at is None else expires_at,
            **kwargs
        }
        return self.signer.sign(claims)

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Validate a token.

        Args:
            token: Token string

        Returns:
            Decoded claims or None if invalid
        """
        key = self.secret_key
        if isinstance(key, (bytes, bytearray)):
            key = bytes(key)

        try:
            return jwt.decode(token, key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.warning("token_expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning("token_invalid", error=str(e))
            return None


__all__ = [
    'ALGORITHM',
    'HEADER',
    'b64url_encode',
    'sign_hmac',
    'generate_token',
    'CompactTokenSigner',
    'TokenAuth',
]
