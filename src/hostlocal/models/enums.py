"""
Enumeration types for hostlocal.

This module defines the enumeration types shared across the plugin for
command dispatch, address families and configuration options.
"""

from enum import Enum


# =============================================================================
# Plugin Enums
# =============================================================================


class Command(str, Enum):
    """
    CNI command selected through CNI_COMMAND.

    - ADD: allocate one address per range set
    - DEL: release every lease held by the interface
    - CHECK: verify that at least one lease exists
    - VERSION: report the supported CNI versions
    """

    ADD = "ADD"
    DEL = "DEL"
    CHECK = "CHECK"
    VERSION = "VERSION"


class IPVersion(str, Enum):
    """Address family tag used by 0.3.x/0.4.0 results."""

    V4 = "4"
    V6 = "6"


# =============================================================================
# Configuration Enums
# =============================================================================


class LogLevel(str, Enum):
    """
    Logging verbosity levels.

    Levels (from most to least verbose):
        - FULL: Complete trace with detailed stack information
        - DEBUG: Debug messages and above
        - INFO: Informational messages and above
        - WARNING: Only warnings and errors
    """

    FULL = "full"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
