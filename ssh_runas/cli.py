"""Command line interface for ssh-runas."""

import argparse
import asyncio
import dataclasses
import logging
import signal
import sys
from enum import IntEnum
from importlib.resources import files

from ssh_runas import __version__
from ssh_runas.config import DEFAULT_PORT, ConfigInvalid, RunConfig, Settings
from ssh_runas.models import ExecutionResult
from ssh_runas.services import Cancelled, LockHeld, SessionError, run_command
from ssh_runas.utils.console import ColorfulFormatter

logger = logging.getLogger(__name__)

ISSUES_EPILOG = "Have an issue? Need more help? File an issue: https://github.com/xforever1313/SshRunAs"


class ExitStatus(IntEnum):
    """Process exit statuses for outcomes other than a remote exit code."""

    SUCCESS = 0
    INVALID_ARGUMENTS = 1
    CANCELLED = 2
    LOCK_HELD = 3
    SESSION_FAILED = 4
    AMBIGUOUS_TERMINATION = 5
    UNEXPECTED = 255


class UsageError(Exception):
    """Command line could not be parsed."""

    pass


class _ArgumentParser(argparse.ArgumentParser):
    """Raise instead of exiting with argparse's own status 2."""

    def error(self, message: str) -> None:  # type: ignore[override]
        raise UsageError(message)


def _port(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError("Port must be an unsigned int") from None
    if not 0 < port < 65536:
        raise argparse.ArgumentTypeError("Port must be between 1 and 65535")
    return port


def _verbosity(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise argparse.ArgumentTypeError("Verbosity must be an integer") from None


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = _ArgumentParser(
        prog="ssh-runas",
        usage="ssh-runas -s server -u userEnvVar -p passwordEnvVar -c command [-P port]",
        description="Run a command on a remote host over SSH.",
        epilog=ISSUES_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    info = parser.add_argument_group("information")
    info.add_argument("--version", action="store_true", help="Shows the version and exits.")
    info.add_argument(
        "--license", action="store_true", help="Shows the license information and exits."
    )
    info.add_argument(
        "--readme", action="store_true", help="Shows the readme as markdown and exits."
    )
    info.add_argument(
        "--credits",
        action="store_true",
        help="Shows the third-party credits information as markdown and exits.",
    )

    parser.add_argument(
        "-c", "--command", default="", help="The command to run on the server. Required."
    )
    parser.add_argument(
        "-u",
        "--user",
        default="",
        metavar="ENV_VAR",
        help="The name of the ENVIRONMENT VARIABLE that contains the user name. "
        "This is NOT the username itself. Required.",
    )
    parser.add_argument(
        "-p",
        "--pass_env",
        default="",
        metavar="ENV_VAR",
        help="The name of the ENVIRONMENT VARIABLE that contains the password. "
        "This is NOT the password itself. Required.",
    )
    parser.add_argument(
        "-s", "--server", default="", help="The host or IP of the server to connect to. Required."
    )
    parser.add_argument(
        "-P",
        "--port",
        type=_port,
        default=DEFAULT_PORT,
        help=f"The port to connect to. Defaulted to {DEFAULT_PORT}.",
    )
    parser.add_argument(
        "-v",
        "--verbosity",
        type=_verbosity,
        default=0,
        help="The verbosity of the output. 0 for warnings and errors only. Defaulted to 0.",
    )
    parser.add_argument(
        "-l",
        "--lockfile",
        default="",
        help="If this file exists, the command is not run. "
        "Created for the duration of the run. Optional.",
    )
    parser.add_argument(
        "--atomic-lock",
        action="store_true",
        help="Create the lock file atomically (O_EXCL).",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Raises:
        UsageError: If the arguments are invalid
    """
    return build_parser().parse_args(argv)


def verbosity_to_level(verbosity: int) -> int:
    """Map the -v count onto a logging level."""
    if verbosity <= 0:
        return logging.WARNING
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


def configure_logging(verbosity: int, settings: Settings) -> None:
    """Install the colorful stderr handler on the ssh_runas logger."""
    if settings.log_level:
        level = getattr(logging, settings.log_level, logging.WARNING)
    else:
        level = verbosity_to_level(verbosity)

    use_colors = settings.log_colors and sys.stderr.isatty()

    runas_logger = logging.getLogger("ssh_runas")
    runas_logger.setLevel(level)

    if not runas_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ColorfulFormatter(use_colors=use_colors))
        runas_logger.addHandler(handler)
        runas_logger.propagate = False

    logging.getLogger("asyncssh").setLevel(logging.WARNING)


def read_static_text(name: str) -> str:
    """Read a text file shipped inside the package."""
    return files("ssh_runas").joinpath("static").joinpath(name).read_text(encoding="utf-8")


def exit_status_for(result: ExecutionResult) -> int:
    """Translate a remote result into a local process exit status.

    Remote exit codes pass through when they fit in a process exit status;
    larger ones would be truncated by the OS (256 becomes 0), so they map to
    UNEXPECTED. A signal maps to 128 + its number, as shells do.
    """
    if result.exit_signal is not None:
        try:
            return 128 + signal.Signals[f"SIG{result.exit_signal.upper()}"].value
        except KeyError:
            return ExitStatus.UNEXPECTED
    if result.exit_code is not None:
        if not 0 <= result.exit_code <= 255:
            return ExitStatus.UNEXPECTED
        return result.exit_code
    return ExitStatus.AMBIGUOUS_TERMINATION


def _install_signal_handlers(cancel_event: asyncio.Event) -> list[signal.Signals]:
    """Route SIGINT/SIGTERM to the cancellation event.

    The first signal requests a clean shutdown and removes the handlers, so
    a second signal kills the process without cleanup.
    """
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []

    def on_signal(sig: signal.Signals) -> None:
        logger.warning("%s was received, cleaning up...", sig.name)
        cancel_event.set()
        _remove_signal_handlers(installed)

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, on_signal, sig)
        except (NotImplementedError, RuntimeError):
            logger.debug("add_signal_handler not implemented for signal %s on this platform", sig)
            break
        installed.append(sig)
    return installed


def _remove_signal_handlers(installed: list[signal.Signals]) -> None:
    loop = asyncio.get_running_loop()
    while installed:
        loop.remove_signal_handler(installed.pop())


async def run(args: argparse.Namespace, settings: Settings) -> int:
    """Run the configured command and map the outcome to an exit status."""
    try:
        config = RunConfig.from_env_names(
            command=args.command,
            host=args.server,
            user_env=args.user,
            pass_env=args.pass_env,
            port=args.port,
            lock_file=args.lockfile,
        )
    except ConfigInvalid as e:
        logger.error("%s", e)
        return ExitStatus.INVALID_ARGUMENTS

    cancel_event = asyncio.Event()
    installed = _install_signal_handlers(cancel_event)
    try:
        logger.warning(
            "Running '%s' using password stored in '%s' on %s:%d",
            config.command,
            args.pass_env,
            config.host,
            config.port,
        )
        result = await run_command(config, cancel_event, settings)
    except ConfigInvalid as e:
        logger.error("%s", e)
        return ExitStatus.INVALID_ARGUMENTS
    except LockHeld as e:
        logger.error("%s", e)
        return ExitStatus.LOCK_HELD
    except SessionError as e:
        logger.error("%s", e)
        return ExitStatus.SESSION_FAILED
    except Cancelled as e:
        logger.error("%s", e)
        return ExitStatus.CANCELLED
    except Exception as e:
        logger.error("Unexpected exception: %s", e, exc_info=logger.isEnabledFor(logging.DEBUG))
        return ExitStatus.UNEXPECTED
    finally:
        _remove_signal_handlers(installed)

    if result.is_ambiguous:
        logger.error("Remote command ended without an exit code or exit signal")
    elif result.exit_signal is not None:
        logger.warning("Remote command was terminated by signal %s", result.exit_signal)
    elif not 0 <= result.exit_code <= 255:  # type: ignore[operator]
        logger.error(
            "Remote exit code %d does not fit in a process exit status, exiting with %d",
            result.exit_code,
            ExitStatus.UNEXPECTED,
        )
    return exit_status_for(result)


def main(argv: list[str] | None = None) -> int:
    """Entry point. Returns the process exit status."""
    try:
        args = parse_args(argv)
    except UsageError as e:
        print(f"Invalid Arguments: {e}", file=sys.stderr)
        return ExitStatus.INVALID_ARGUMENTS

    if args.version:
        print(__version__)
        return ExitStatus.SUCCESS
    if args.license:
        print("ssh-runas - Copyright ssh-runas contributors.")
        print()
        print(read_static_text("LICENSE_1_0.txt"))
        return ExitStatus.SUCCESS
    if args.readme:
        print(read_static_text("Readme.md"))
        return ExitStatus.SUCCESS
    if args.credits:
        print(read_static_text("Credits.md"))
        return ExitStatus.SUCCESS

    settings = Settings.from_env()
    if args.atomic_lock:
        settings = dataclasses.replace(settings, atomic_lock=True)
    configure_logging(args.verbosity, settings)

    try:
        return asyncio.run(run(args, settings))
    except KeyboardInterrupt:
        logger.warning("Interrupted, exiting without cleanup")
        return ExitStatus.CANCELLED
