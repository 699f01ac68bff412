"""Remote collaborators for the checkout flow.

Re-exports the public API so consumers can write::

    from movein.gateway import AddressLookup, ConsumerApi, ErcotLookup, ConsumerApiClient
"""

from __future__ import annotations

from movein.gateway.base import (
    AddressLookup,
    CheckoutFile,
    CheckoutReceipt,
    ConsumerApi,
)
from movein.gateway.consumer import ConsumerApiClient
from movein.gateway.ercot import ErcotLookup, meter_search_line, unit_digits

__all__ = [
    "AddressLookup",
    "CheckoutFile",
    "CheckoutReceipt",
    "ConsumerApi",
    "ConsumerApiClient",
    "ErcotLookup",
    "meter_search_line",
    "unit_digits",
]
