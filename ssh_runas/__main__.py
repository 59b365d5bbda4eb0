"""Entry point for ssh-runas."""

import sys

from ssh_runas.cli import main

if __name__ == "__main__":
    sys.exit(main())
