"""
Ordered credential pool for a single provider.

Providers with per-key rate limits are configured with several API keys. The pool
tracks which key is in use and advances to the next one, circularly, when the
provider adapter decides a failure warrants a different key.
"""

import logging
from typing import List, Sequence

from reply_core.config.config_manager import ConfigurationError


class CredentialPool:
    """
    Circular pool of API keys for one provider.

    Keys are only ever identified by position; the secrets themselves are never
    logged.
    """

    def __init__(self, provider_id: str, credentials: Sequence[str]):
        """
        Initialize the pool.

        Args:
            provider_id: Provider the keys belong to, used in log messages
            credentials: Ordered API keys, at least one

        Raises:
            ConfigurationError: If no credentials are given
        """
        if not credentials:
            raise ConfigurationError(f"Credential pool for {provider_id} needs at least one key")

        self.provider_id = provider_id
        self._credentials: List[str] = list(credentials)
        self._index = 0
        self.logger = logging.getLogger(__name__)

    @property
    def current_index(self) -> int:
        return self._index

    def current(self) -> str:
        """Return the key currently in use."""
        return self._credentials[self._index]

    def rotate(self) -> int:
        """
        Advance to the next key, wrapping around at the end.

        Returns:
            The new index
        """
        previous = self._index
        self._index = (self._index + 1) % len(self._credentials)
        self.logger.info(f"{self.provider_id} key rotated: {previous + 1} -> {self._index + 1}")
        return self._index

    def size(self) -> int:
        return len(self._credentials)

    def __len__(self) -> int:
        return len(self._credentials)

    def __repr__(self) -> str:
        return (
            f"CredentialPool(provider_id={self.provider_id!r}, "
            f"index={self._index}, size={len(self._credentials)})"
        )
