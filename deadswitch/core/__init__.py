"""
Deadswitch Core Data Structures
"""

from deadswitch.core.types import (
    View,
    Identity,
    WillRecord,
    WillStatus,
    InheritanceClaim,
    DerivedAddress,
    AddressSet,
    CustodyKey,
    CustodyKeyKind,
    normalize_network,
    derived_address_cache_key,
)

__all__ = [
    "View",
    "Identity",
    "WillRecord",
    "WillStatus",
    "InheritanceClaim",
    "DerivedAddress",
    "AddressSet",
    "CustodyKey",
    "CustodyKeyKind",
    "normalize_network",
    "derived_address_cache_key",
]
