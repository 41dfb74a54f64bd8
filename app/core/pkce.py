"""
State and PKCE (RFC 7636) parameter generation.
"""

from authlib.common.security import generate_token
from authlib.oauth2.rfc7636 import create_s256_code_challenge


STATE_LENGTH = 32
# RFC 7636 allows 43-128 characters
CODE_VERIFIER_LENGTH = 64


def generate_state() -> str:
    """Generate an unguessable state value."""
    return generate_token(STATE_LENGTH)


def generate_code_verifier() -> str:
    """Generate a PKCE code verifier."""
    return generate_token(CODE_VERIFIER_LENGTH)


def code_challenge_for(code_verifier: str) -> str:
    """Derive the S256 code challenge for a verifier."""
    return create_s256_code_challenge(code_verifier)
