"""SLURM command-line client.

Runs ``sinfo`` and ``squeue`` as short-lived child processes, captures
their standard output and maps every failure mode onto a small exception
hierarchy so callers can abort a scrape cleanly.
"""

import subprocess
import time

import structlog

from .types import SINFO_PARTITION_FORMAT, SQUEUE_PARTITION_FORMAT, JobState

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 30.0


class SlurmCommandError(RuntimeError):
    """Raised when a SLURM command cannot produce usable output."""

    def __init__(self, command: list[str], message: str):
        self.command = command
        super().__init__(f"{' '.join(command)}: {message}")


class SlurmCommandUnavailableError(SlurmCommandError):
    """Raised when the command could not be started."""


class SlurmCommandExitError(SlurmCommandError):
    """Raised when the command exits with a non-zero status."""

    def __init__(self, command: list[str], returncode: int, stderr: str):
        self.returncode = returncode
        self.stderr = stderr
        message = f"exited with status {returncode}"
        if stderr:
            message = f"{message}: {stderr}"
        super().__init__(command, message)


class SlurmCommandTimeoutError(SlurmCommandError):
    """Raised when the command does not finish within the timeout."""


class SlurmCliClient:
    """Client for the SLURM command-line tools.

    Each query spawns exactly one process and waits for it to exit. The
    client holds no state besides its configuration, so a single instance
    can be shared between threads serving concurrent scrapes.
    """

    def __init__(
        self,
        sinfo_command: str = "sinfo",
        squeue_command: str = "squeue",
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """Initialize the CLI client.

        Args:
            sinfo_command: Executable used for partition state queries.
            squeue_command: Executable used for job queue queries.
            timeout: Per-command timeout in seconds (default: 30.0).

        Raises:
            ValueError: If a command is empty or timeout is not positive.
        """
        if not sinfo_command or not squeue_command:
            msg = "commands cannot be empty"
            raise ValueError(msg)
        if timeout <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)

        self.sinfo_command = sinfo_command
        self.squeue_command = squeue_command
        self._timeout = timeout

    def _run(self, command: list[str]) -> str:
        """Run a command and return its standard output.

        Undecodable bytes are replaced so that a single bad line is left to
        the per-line parsers instead of failing the whole command.

        Args:
            command: Command line to execute.

        Returns:
            Decoded standard output.

        Raises:
            SlurmCommandUnavailableError: If the process cannot be spawned.
            SlurmCommandExitError: If the process exits non-zero.
            SlurmCommandTimeoutError: If the process exceeds the timeout.
        """
        start_time = time.time()
        logger.debug("Running command", command=command)

        try:
            result = subprocess.run(  # noqa: S603
                command,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self._timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            logger.error(
                "Command timed out",
                command=command,
                timeout_seconds=self._timeout,
            )
            msg = f"timed out after {self._timeout} seconds"
            raise SlurmCommandTimeoutError(command, msg) from e
        except OSError as e:
            logger.error("Command could not be started", command=command, error=str(e))
            raise SlurmCommandUnavailableError(command, str(e)) from e

        duration = time.time() - start_time
        if result.returncode != 0:
            logger.error(
                "Command failed",
                command=command,
                returncode=result.returncode,
                duration_seconds=round(duration, 3),
            )
            raise SlurmCommandExitError(command, result.returncode, result.stderr.strip())

        logger.debug("Command completed", command=command, duration_seconds=round(duration, 3))
        return result.stdout

    def read_partition_state(self) -> str:
        """Fetch partition state lines from ``sinfo``.

        Returns:
            One line per partition and node state bucket, formatted as
            ``partition,nodes,cpus_per_node,state``.

        Raises:
            SlurmCommandError: If the command fails.
        """
        return self._run([self.sinfo_command, "-h", f"-o{SINFO_PARTITION_FORMAT}"])

    def read_jobs_by_state(self, state: JobState) -> str:
        """Fetch the partition list of every job in the given state.

        Args:
            state: Job state to query.

        Returns:
            One line per job holding its partition name, or a comma-joined
            list when the job was submitted to several partitions.

        Raises:
            SlurmCommandError: If the command fails.
        """
        state = JobState(state)
        return self._run(
            [
                self.squeue_command,
                "-a",
                "-r",
                "-h",
                f"-o{SQUEUE_PARTITION_FORMAT}",
                f"--states={state.squeue_state}",
            ],
        )
