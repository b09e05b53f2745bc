"""External identity platform adapters.

This module provides:
- IdentityProvider interface used by the profile scanner
- RobloxIdentityProvider for the Roblox web APIs
- MockIdentityProvider for tests
"""

from profilelink.adapters.identity.base import IdentityProvider
from profilelink.adapters.identity.mock_adapter import MockIdentityProvider
from profilelink.adapters.identity.roblox import RobloxIdentityProvider

__all__ = [
    "IdentityProvider",
    "MockIdentityProvider",
    "RobloxIdentityProvider",
]
