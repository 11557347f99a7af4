"""
Lease database models.

Each network keeps its own SQLite ledger, so models are not bound to a global
database. The Store binds them to its own connection for the duration of each
operation.

Models:
    - Lease: one address handed to one (container, interface) in one range set
    - LastReserved: last address handed out per range set, for round-robin
"""

import datetime

import peewee


# =============================================================================
# Base Model
# =============================================================================


class BaseModel(peewee.Model):
    """Base class for ledger models; the database is bound per Store."""

    class Meta:
        database = None


# =============================================================================
# Ledger Models
# =============================================================================


class Lease(BaseModel):
    """
    An address leased to a container interface.

    Invariants (enforced by unique indexes):
        - at most one lease per (network, address)
        - at most one lease per (network, range_index, container_id, ifname)
    """

    network = peewee.CharField()
    range_index = peewee.IntegerField()
    address = peewee.CharField()
    container_id = peewee.CharField()
    ifname = peewee.CharField()
    created_at = peewee.DateTimeField(default=datetime.datetime.now)

    class Meta:
        table_name = "leases"
        indexes = (
            (("network", "address"), True),
            (("network", "range_index", "container_id", "ifname"), True),
        )


class LastReserved(BaseModel):
    """Most recently reserved address of a range set."""

    network = peewee.CharField()
    range_index = peewee.IntegerField()
    address = peewee.CharField()

    class Meta:
        table_name = "last_reserved"
        primary_key = peewee.CompositeKey("network", "range_index")


MODELS = [Lease, LastReserved]
