"""ssh-runas - run one command on a remote host over SSH.

Credentials come from environment variables, output is relayed in real
time, and an optional lock file prevents overlapping runs.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("ssh-runas")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = ["__version__"]
