"""
hostlocal: host-local IP address management for CNI networks.

Allocates one address per configured range set to a container interface,
persisting leases in a per-network ledger on the local host.
"""

__version__ = "0.1.0"
