"""Base exception for ssh-runas."""


class RunAsError(Exception):
    """Base class for every failure surfaced by the command runner."""

    pass
