"""PKCE (Proof Key for Code Exchange) generation.

Implements RFC 7636 verifier and S256 challenge generation. Verifiers are
restricted to ``[A-Za-z0-9]``, a valid subset of the unreserved set.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
import string

from tunegate.auth.models.errors import EncodingError, InvalidLengthError, PKCEError
from tunegate.auth.models.security import (
    MAX_VERIFIER_LENGTH,
    MIN_VERIFIER_LENGTH,
    PKCEParameters,
)

VERIFIER_ALPHABET = string.ascii_letters + string.digits


def generate_verifier(length: int = MAX_VERIFIER_LENGTH) -> str:
    """Generate a cryptographically secure code verifier.

    Args:
        length: Number of characters, 43 to 128 inclusive

    Raises:
        InvalidLengthError: If length is outside 43-128
    """
    if isinstance(length, bool) or not isinstance(length, int):
        raise InvalidLengthError(f"Verifier length must be an integer, got {length!r}")
    if not (MIN_VERIFIER_LENGTH <= length <= MAX_VERIFIER_LENGTH):
        raise InvalidLengthError(
            f"Verifier length must be between {MIN_VERIFIER_LENGTH} and "
            f"{MAX_VERIFIER_LENGTH}, got {length}"
        )
    return "".join(secrets.choice(VERIFIER_ALPHABET) for _ in range(length))


def derive_challenge(verifier: str) -> str:
    """Derive the S256 code challenge for a verifier.

    BASE64URL-ENCODE(SHA256(UTF8(code_verifier))) with padding stripped.

    Raises:
        EncodingError: If SHA-256 is unavailable (e.g. a restricted FIPS build)
    """
    try:
        hasher = hashlib.new("sha256")
    except ValueError as e:
        raise EncodingError(f"SHA-256 is unavailable: {e}") from e

    hasher.update(verifier.encode("utf-8"))
    return base64.urlsafe_b64encode(hasher.digest()).decode("ascii").rstrip("=")


class PKCEManager:
    """Generates fresh PKCE parameters for each login attempt.

    Persistence of the verifier is the caller's responsibility.
    """

    def __init__(self, verifier_length: int = MAX_VERIFIER_LENGTH):
        self.verifier_length = verifier_length

    def generate_parameters(self) -> PKCEParameters:
        """Generate new PKCE parameters for an authorization flow.

        Raises:
            InvalidLengthError: If the configured length is out of range
            EncodingError: If the hash primitive is unavailable
        """
        code_verifier = generate_verifier(self.verifier_length)
        code_challenge = derive_challenge(code_verifier)

        try:
            return PKCEParameters(
                code_verifier=code_verifier,
                code_challenge=code_challenge,
                code_challenge_method="S256",
            )
        except ValueError as e:
            raise PKCEError(f"Failed to generate PKCE parameters: {e}") from e
