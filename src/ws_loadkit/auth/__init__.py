"""Connection authentication tokens."""

from .token import CompactTokenSigner, TokenAuth, generate_token, sign_hmac, b64url_encode

__all__ = ["CompactTokenSigner", "TokenAuth", "generate_token", "sign_hmac", "b64url_encode"]
