"""
Plugin configuration for hostlocal.

A global PluginConfig instance holds the process-wide settings that do not
come from the CNI network configuration itself. Values are read from the
environment with ``load_from_env()`` before a command runs.

Usage:
    from hostlocal.config import config

    config.LOG_FILE = "/var/log/hostlocal.log"
    config.LOG_LEVEL = LogLevel.DEBUG
"""

import os
from dataclasses import dataclass

from hostlocal.models.enums import LogLevel


# =============================================================================
# Configuration Dataclass
# =============================================================================


@dataclass
class PluginConfig:
    """
    hostlocal plugin configuration.

    Attributes:
        DEFAULT_DATA_DIR: Lease ledger root when the network config has no dataDir.
        LOG_FILE: File receiving per-invocation logs ("" disables it).
        LOG_LEVEL: Verbosity of the invocation log file.
        CONSOLE_LOG_LEVEL: Verbosity of the stderr sink.
        LOCK_FILE_NAME: Name of the lock file inside each network directory.
        DB_FILE_NAME: Name of the SQLite ledger inside each network directory.
        LOCK_TIMEOUT_SECONDS: How long to wait for another invocation's lock.
        LOCK_POLL_INTERVAL_SECONDS: Delay between lock attempts.
    """

    # -------------------------------------------------------------------------
    # Path Configuration
    # -------------------------------------------------------------------------

    DEFAULT_DATA_DIR: str = "/var/lib/cni/networks"
    LOCK_FILE_NAME: str = "lock"
    DB_FILE_NAME: str = "leases.db"

    # -------------------------------------------------------------------------
    # Locking Configuration
    # -------------------------------------------------------------------------

    LOCK_TIMEOUT_SECONDS: float = 60.0
    LOCK_POLL_INTERVAL_SECONDS: float = 0.05

    # -------------------------------------------------------------------------
    # Logging Configuration
    # -------------------------------------------------------------------------

    LOG_FILE: str = ""
    LOG_LEVEL: LogLevel = LogLevel.INFO
    CONSOLE_LOG_LEVEL: LogLevel = LogLevel.WARNING

    def load_from_env(self, environ: dict[str, str] | None = None) -> None:
        """
        Override settings from HOSTLOCAL_* environment variables.

        Raises:
            ValueError: If a log level variable holds an unknown level.
        """
        env = os.environ if environ is None else environ

        if env.get("HOSTLOCAL_DATA_DIR"):
            self.DEFAULT_DATA_DIR = env["HOSTLOCAL_DATA_DIR"]
        if "HOSTLOCAL_LOG_FILE" in env:
            self.LOG_FILE = env["HOSTLOCAL_LOG_FILE"]
        if env.get("HOSTLOCAL_LOCK_TIMEOUT"):
            self.LOCK_TIMEOUT_SECONDS = float(env["HOSTLOCAL_LOCK_TIMEOUT"])
        if env.get("HOSTLOCAL_LOG_LEVEL"):
            self.LOG_LEVEL = LogLevel(env["HOSTLOCAL_LOG_LEVEL"].lower())
        if env.get("HOSTLOCAL_CONSOLE_LOG_LEVEL"):
            self.CONSOLE_LOG_LEVEL = LogLevel(
                env["HOSTLOCAL_CONSOLE_LOG_LEVEL"].lower()
            )


# =============================================================================
# Global Configuration Instance
# =============================================================================

config = PluginConfig()
