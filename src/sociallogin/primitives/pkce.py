"""PKCE (Proof Key for Code Exchange) primitive.

Implements RFC 7636 verifier generation and challenge derivation to bind the
authorization request to the token exchange.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
import string

from sociallogin.models.errors import PKCEError
from sociallogin.models.security import (
    MAX_VERIFIER_LENGTH,
    MIN_VERIFIER_LENGTH,
    PKCE_METHODS,
    PKCEParameters,
)

# RFC 7636 Section 4.1 unreserved characters
UNRESERVED_CHARACTERS = string.ascii_letters + string.digits + "-._~"


class PKCEManager:
    """Generates PKCE verifier/challenge pairs.

    The verifier is returned to the caller and must come back with the
    callback; nothing here is persisted.
    """

    def __init__(self, verifier_length: int = MAX_VERIFIER_LENGTH):
        self.verifier_length = verifier_length

    def generate_parameters(
        self, method: str = "S256", length: int | None = None
    ) -> PKCEParameters:
        """Generate new PKCE parameters for an authorization attempt.

        Raises:
            PKCEError: If the method or length is not allowed
        """
        code_verifier = self.generate_verifier(length or self.verifier_length)
        code_challenge = self.derive_challenge(code_verifier, method)

        return PKCEParameters(
            code_verifier=code_verifier,
            code_challenge=code_challenge,
            code_challenge_method=method,
        )

    def generate_verifier(self, length: int = MAX_VERIFIER_LENGTH) -> str:
        """Generate a cryptographically secure code verifier.

        RFC 7636 Section 4.1: 43-128 characters from
        [A-Z] / [a-z] / [0-9] / "-" / "." / "_" / "~"
        """
        if not (MIN_VERIFIER_LENGTH <= length <= MAX_VERIFIER_LENGTH):
            raise PKCEError(
                f"code_verifier length must be {MIN_VERIFIER_LENGTH}-"
                f"{MAX_VERIFIER_LENGTH}, got {length}"
            )
        return "".join(secrets.choice(UNRESERVED_CHARACTERS) for _ in range(length))

    def derive_challenge(self, code_verifier: str, method: str = "S256") -> str:
        """Derive the code challenge for a verifier.

        S256: BASE64URL-ENCODE(SHA256(ASCII(code_verifier))) without padding.
        plain: the verifier itself.
        """
        if method not in PKCE_METHODS:
            raise PKCEError(f"Unsupported code challenge method: {method}")

        if method == "plain":
            return code_verifier

        try:
            digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
        except UnicodeEncodeError as e:
            raise PKCEError("code_verifier must be ASCII") from e

        return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")
