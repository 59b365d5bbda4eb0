"""Utilities for ssh-runas."""

from ssh_runas.utils.console import ColorfulFormatter

__all__ = [
    "ColorfulFormatter",
]
