"""Configuration module for ssh-runas.

Provides focused classes for different configuration concerns:
- RunConfig: What to run, where, and as whom (one invocation)
- HostKeyVerifier: Manages SSH host key verification
- Settings: Environment variable configuration
"""

from ssh_runas.config.host_keys import HostKeyVerifier
from ssh_runas.config.main import DEFAULT_PORT, ConfigInvalid, RunConfig
from ssh_runas.config.settings import Settings

__all__ = ["ConfigInvalid", "DEFAULT_PORT", "HostKeyVerifier", "RunConfig", "Settings"]
