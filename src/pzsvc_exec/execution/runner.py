"""Build and run the external command inside a workspace."""

import subprocess
from dataclasses import dataclass
from pathlib import Path

from pzsvc_exec.errors import ExecutionError, InvalidRequestError


@dataclass(frozen=True)
class CommandOutcome:
    stdout: str
    stderr: str
    returncode: int


def split_tokens(command: str) -> list[str]:
    return command.split()


def build_argv(prefix: str, command: str) -> list[str]:
    """Configured prefix tokens followed by the caller's tokens."""
    argv = split_tokens(prefix) + split_tokens(command)
    if not argv:
        raise InvalidRequestError("No cmd or CliCmd.  Please provide `cmd` param.")
    return argv


def localize_executable(argv: list[str], install_dir: Path) -> list[str]:
    """Point the first token one level up when it names a file in the install dir.

    Commands run from a workspace directly below the install directory, so a
    bundled executable referenced by a relative name is reached through `../`.
    Absolute paths are left alone.
    """
    if argv and not Path(argv[0]).is_absolute() and (Path(install_dir) / argv[0]).exists():
        return [f"../{argv[0]}", *argv[1:]]
    return list(argv)


def _decode(raw: bytes | str | None) -> str:
    if raw is None:
        return ""
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    return raw


class CommandRunner:
    """Runs one command with its output captured in full."""

    def __init__(self, install_dir: Path, max_run_time: int = 0) -> None:
        self.install_dir = Path(install_dir)
        self.max_run_time = max_run_time

    def run(self, argv: list[str], workspace: Path) -> CommandOutcome:
        """Run `argv` with cwd set to `workspace`.

        Raises ExecutionError on spawn failure, timeout or non-zero exit; the
        error carries whatever output was captured.
        """
        args = localize_executable(argv, self.install_dir)
        timeout = self.max_run_time if self.max_run_time > 0 else None
        try:
            completed = subprocess.run(args, cwd=workspace, capture_output=True, timeout=timeout, check=False)
        except subprocess.TimeoutExpired as exc:
            raise ExecutionError(
                f"Command `{' '.join(argv)}` exceeded the maximum run time of {self.max_run_time}s",
                stdout=_decode(exc.stdout),
                stderr=_decode(exc.stderr),
            ) from exc
        except (OSError, ValueError) as exc:
            raise ExecutionError(f"Command `{' '.join(argv)}` could not be started: {exc}") from exc

        outcome = CommandOutcome(
            stdout=_decode(completed.stdout),
            stderr=_decode(completed.stderr),
            returncode=completed.returncode,
        )
        if completed.returncode != 0:
            raise ExecutionError(
                f"Command `{' '.join(argv)}` exited with status {completed.returncode}",
                stdout=outcome.stdout,
                stderr=outcome.stderr,
            )
        return outcome
