"""
Deadswitch Liveness Client

Liveness clock, custody address codec and session state machine for a
dead-man's-switch inheritance application.
"""

__version__ = "0.3.0"
__author__ = "Deadswitch Team"

from deadswitch.constants import NETWORK_MAINNET, NETWORK_TESTNET, NO_PROTOCOL_SENTINEL

__all__ = [
    "NETWORK_MAINNET",
    "NETWORK_TESTNET",
    "NO_PROTOCOL_SENTINEL",
    "__version__",
]
