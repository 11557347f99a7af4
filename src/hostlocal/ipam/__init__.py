"""
Allocation core: range allocators, the ADD transaction and command handlers.

    from hostlocal.ipam import cmd_add, cmd_del, cmd_check
"""

from hostlocal.ipam.handlers import cmd_add, cmd_check, cmd_del

__all__ = ["cmd_add", "cmd_del", "cmd_check"]
