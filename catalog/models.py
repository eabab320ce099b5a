"""
catalog/models.py -- Domain dataclasses for the Shopgate product catalog.

Pure data containers with zero logic. Filtering, ordering, and persistence
live in catalog/store.py.

The catalog knows identities only by id: owner_id is stamped from the claims
of the OWNER who created the product. It is a weak reference -- nothing
enforces that the identity still exists.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Product:
    """A catalog item owned by an OWNER identity.

    id is None before the record is written to the database.
    price is a non-negative decimal amount in the store's currency.
    """

    name: str
    price: float
    category: str
    owner_id: str
    description: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""  # ISO 8601, set by store on every write
