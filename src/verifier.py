"""
Runs the external verification command against an upgraded service.
"""

import logging
import subprocess
import threading
from typing import IO, Sequence

from errors import VerificationFailed

logger = logging.getLogger(__name__)

# Seconds to keep reading output after the command exits.
DRAIN_TIMEOUT_S = 5.0


def _drain(stream: IO[str]) -> None:
    """Log every line of a child's output until EOF."""
    with stream:
        for line in stream:
            logger.info(f"  | {line.rstrip()}")


def run_verification(command: str, args: Sequence[str] = ()) -> None:
    """
    Run a verification command, streaming its stdout to the log.

    Output is read on a background thread while this thread waits for the
    process, so a chatty command cannot block on a full pipe. Undecodable
    bytes are replaced rather than failing the reader. Once the command
    exits, the reader gets DRAIN_TIMEOUT_S to finish; a background process
    left holding the pipe open does not delay the result.

    Args:
        command: Executable to run
        args: Arguments to pass to it

    Raises:
        VerificationFailed: If the command cannot be started or exits non-zero
    """
    argv = [command, *args]
    logger.info(f"Starting verification command: {' '.join(argv)}")
    try:
        proc = subprocess.Popen(
            argv,
            stdout=subprocess.PIPE,
            text=True,
            errors="replace",
            bufsize=1,
        )
    except OSError as e:
        logger.error(f"Could not start verification command: {e}")
        raise VerificationFailed(f"Could not start {command}: {e}")

    reader = threading.Thread(target=_drain, args=(proc.stdout,), daemon=True)
    reader.start()
    returncode = proc.wait()
    reader.join(timeout=DRAIN_TIMEOUT_S)
    if reader.is_alive():
        logger.warning(
            f"Output of {command} still open {DRAIN_TIMEOUT_S:.0f}s after exit; "
            "not waiting for background processes"
        )

    if returncode != 0:
        logger.error(f"Verification command exited with status {returncode}")
        raise VerificationFailed(
            f"{command} exited with status {returncode}", returncode=returncode
        )
    logger.info("Verification command passed")
