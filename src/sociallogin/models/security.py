"""PKCE values carried between the authorization redirect and the callback.

`AuthorizationFlow.make_auth_url` returns a `PKCEParameters` inside
`AuthorizationStart`. The challenge and method go into the authorization URL;
the verifier stays with the caller until `handle_callback` posts it with the
code.
"""

from __future__ import annotations

from dataclasses import dataclass

from sociallogin.models.errors import PKCEError

# Accepted values for a profile's `pkce_method`
PKCE_METHODS = ("S256", "plain")

# RFC 7636 Section 4.1
MIN_VERIFIER_LENGTH = 43
MAX_VERIFIER_LENGTH = 128


@dataclass(frozen=True)
class PKCEParameters:
    """Verifier, challenge and method for one authorization attempt.

    The method is the profile's `pkce_method`. With `plain` the challenge is
    the verifier itself.
    """

    code_verifier: str
    code_challenge: str
    code_challenge_method: str = "S256"

    def __post_init__(self) -> None:
        if self.code_challenge_method not in PKCE_METHODS:
            raise PKCEError(
                f"Unsupported code challenge method: {self.code_challenge_method}"
            )
        for name in ("code_verifier", "code_challenge"):
            if not (MIN_VERIFIER_LENGTH <= len(getattr(self, name)) <= MAX_VERIFIER_LENGTH):
                raise PKCEError(
                    f"{name} must be {MIN_VERIFIER_LENGTH}-{MAX_VERIFIER_LENGTH} characters"
                )
        if self.code_challenge_method == "plain" and self.code_challenge != self.code_verifier:
            raise PKCEError("plain code_challenge must equal the code_verifier")

    def authorization_params(self) -> dict[str, str]:
        """Parameters added to the authorization URL."""
        return {
            "code_challenge": self.code_challenge,
            "code_challenge_method": self.code_challenge_method,
        }
