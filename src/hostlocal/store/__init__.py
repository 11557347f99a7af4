"""
Persistent lease ledger.

Re-exports the main classes:
    from hostlocal.store import Store
    from hostlocal.store import Lease
"""

from hostlocal.store.ledger import Store
from hostlocal.store.models import LastReserved, Lease

__all__ = ["Store", "Lease", "LastReserved"]
