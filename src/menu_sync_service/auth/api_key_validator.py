"""Shared-secret validation for sync trigger endpoints.

Schedulers and operators trigger syncs with a bearer secret. Secrets are
compared in constant time against a configured set of valid secrets.
"""

import hmac


class APIKeyValidator:
    """Validates shared secrets presented by sync callers."""

    def __init__(self, api_keys: list[str]) -> None:
        """Initialize validator with list of valid secrets.

        Args:
            api_keys: List of valid secret strings

        Raises:
            ValueError: If api_keys list is empty
        """
        if not api_keys:
            raise ValueError("At least one API key must be provided")

        self.api_keys = set(api_keys)

    def validate(self, api_key: str) -> bool:
        """Validate a secret.

        Args:
            api_key: The secret to validate

        Returns:
            bool: True if valid, False otherwise
        """
        candidate = api_key.encode()
        return any(hmac.compare_digest(candidate, key.encode()) for key in self.api_keys)
