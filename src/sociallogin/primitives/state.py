"""CSRF state token generation and single-use validation.

A state token is issued with each authorization URL, persisted in the session
store under a namespaced key, and consumed exactly once when the callback
arrives.
"""

from __future__ import annotations

import logging
import secrets

from sociallogin.models.errors import InvalidState, MissingState, UnknownAuthorization
from sociallogin.services.session import SessionStore

logger = logging.getLogger(__name__)

DEFAULT_STATE_PREFIX = "auth_state:"
MIN_ENTROPY_BYTES = 16


def generate_state(entropy_bytes: int = MIN_ENTROPY_BYTES) -> str:
    """Generate a cryptographically secure hex-encoded random token.

    Also used for OpenID Connect nonces.

    Args:
        entropy_bytes: Bytes of randomness; the result has twice as many
            hex characters

    Raises:
        ValueError: If fewer than 16 bytes are requested
    """
    if entropy_bytes < MIN_ENTROPY_BYTES:
        raise ValueError(f"State needs at least {MIN_ENTROPY_BYTES} bytes of entropy")
    return secrets.token_hex(entropy_bytes)


def namespaced_key(token: str, prefix: str = DEFAULT_STATE_PREFIX) -> str:
    """Session key under which a state token is stored."""
    return f"{prefix}{token}"


class StateToken:
    """Issues and consumes state tokens against a session store."""

    def __init__(
        self,
        store: SessionStore,
        prefix: str = DEFAULT_STATE_PREFIX,
        entropy_bytes: int = MIN_ENTROPY_BYTES,
    ):
        self.store = store
        self.prefix = prefix
        self.entropy_bytes = entropy_bytes

    def issue(self) -> str:
        """Generate a new state token and persist it."""
        state = generate_state(self.entropy_bytes)
        self.store.set(namespaced_key(state, self.prefix), state)
        return state

    def consume(self, state: str | None) -> None:
        """Validate a callback state and remove it from the store.

        The stored entry is deleted as soon as it is found, before comparing,
        so a failed or replayed callback can never be retried.

        Raises:
            MissingState: If the callback has no state
            UnknownAuthorization: If nothing is stored for this state
            InvalidState: If the stored value does not match
        """
        if not state:
            logger.warning("Callback rejected: missing state parameter")
            raise MissingState()

        key = namespaced_key(state, self.prefix)
        stored = self._take(key)

        if stored is None:
            logger.warning("Callback rejected: no pending authorization for state")
            raise UnknownAuthorization()

        if not secrets.compare_digest(str(stored), state):
            logger.warning("Callback rejected: state parameter mismatch")
            raise InvalidState()

    def discard(self, state: str) -> None:
        """Drop a pending state without validating it."""
        self.store.delete(namespaced_key(state, self.prefix))

    def _take(self, key: str) -> str | None:
        pop = getattr(self.store, "pop", None)
        if callable(pop):
            return pop(key)

        stored = self.store.get(key)
        if stored is not None:
            self.store.delete(key)
        return stored
