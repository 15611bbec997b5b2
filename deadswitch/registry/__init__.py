"""
Deadswitch Registry Collaborators
"""

from deadswitch.registry.backend import RegistryBackend, MockRegistry, MOCK_CUSTODY_KEY
from deadswitch.registry.http import HttpRegistryClient

__all__ = [
    "RegistryBackend",
    "MockRegistry",
    "MOCK_CUSTODY_KEY",
    "HttpRegistryClient",
]
