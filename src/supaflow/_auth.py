"""
This module manages the optional bearer credential sent with stream requests.
It handles retrieval of the token from environment variables or direct input.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

ENV_API_KEY = "SUPAFLOW_API_KEY"


@dataclass(frozen=True, slots=True)
class AuthConfig:
    """
    Configuration container for the stream's bearer credential.
    Streams without authentication simply carry no key.
    """

    api_key: str | None = None

    @staticmethod
    def from_env_or_value(api_key: str | None) -> AuthConfig:
        """
        Create an AuthConfig instance from a provided value or environment variable.

        Args:
            api_key: Optional API key string provided by the user.

        Returns:
            An AuthConfig whose key is the explicit value, the SUPAFLOW_API_KEY
            environment variable, or None when neither is set.
        """
        key = api_key or os.getenv(ENV_API_KEY) or None
        return AuthConfig(api_key=key)

    def headers(self) -> dict[str, str]:
        if not self.api_key:
            return {}
        return {"Authorization": f"Bearer {self.api_key}"}
