"""Stage Runners.

This module defines how a toolchain stage binary is invoked against an
isolated virtual file store.

Design:
    - StageRunner is the contract the pipeline depends on: argument vector +
      store in, exit code out, stderr delivered line by line
    - SubprocessStageRunner runs a native tool with its working directory set
      to a DirectoryFileStore root, so relative paths in the argument vector
      resolve inside the store
"""

import logging
import subprocess
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import IO, Callable, List, Optional, Union, cast

from .file_store import DirectoryFileStore, FileStoreError, VirtualFileStore

logger = logging.getLogger(__name__)

StderrCallback = Callable[[str], None]


class StageRunner(ABC):
    """Interface for one external tool stage."""

    @abstractmethod
    def run(self, argv: List[str], store: VirtualFileStore, on_stderr: StderrCallback) -> int:
        """Invoke the tool.

        Args:
            argv: Argument vector (without the program name)
            store: Isolated store holding the stage inputs
            on_stderr: Called once per stderr line, in emission order

        Returns:
            Tool exit code
        """
        pass


class SubprocessStageRunner(StageRunner):
    """Runs a native tool binary as a subprocess.

    Stdout is drained on a background thread into the debug log; stderr is
    read on the calling thread and forwarded as it arrives.
    """

    def __init__(self, executable: Union[str, Path], timeout: Optional[float] = None):
        """Initialize runner.

        Args:
            executable: Path or name of the tool binary
            timeout: Seconds the tool may run before it is killed
                (None waits indefinitely)
        """
        self.executable = str(executable)
        self.timeout = timeout

    def run(self, argv: List[str], store: VirtualFileStore, on_stderr: StderrCallback) -> int:
        """Run the tool inside the store root.

        Raises:
            FileStoreError: If the store is not a DirectoryFileStore
            subprocess.TimeoutExpired: If the tool outlived the timeout; it
                has been killed and reaped by then
        """
        if not isinstance(store, DirectoryFileStore):
            raise FileStoreError(
                f"{self.executable} needs a DirectoryFileStore, got {type(store).__name__}"
            )

        cmd = [self.executable, *argv]
        logger.debug(f"Running {' '.join(cmd)} in {store.root}")

        process = subprocess.Popen(
            cmd,
            cwd=str(store.root),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors='replace',
        )

        stdout_thread = threading.Thread(
            target=self._drain_stdout,
            args=(process.stdout,),
            daemon=True
        )
        stdout_thread.start()

        expired = threading.Event()
        watchdog = None
        if self.timeout is not None:
            watchdog = threading.Timer(self.timeout, self._expire, args=(process, expired))
            watchdog.daemon = True
            watchdog.start()

        try:
            stderr = cast(IO[str], process.stderr)
            for line in stderr:
                on_stderr(line.rstrip('\r\n'))
            stderr.close()
            returncode = process.wait()
        except BaseException:
            process.kill()
            process.wait()
            raise
        finally:
            if watchdog is not None:
                watchdog.cancel()
            stdout_thread.join()

        if expired.is_set():
            raise subprocess.TimeoutExpired(cmd, self.timeout)
        return returncode

    def _expire(self, process: subprocess.Popen, expired: threading.Event) -> None:
        if process.poll() is None:
            logger.warning(f"{self.executable} timed out after {self.timeout}s, killing it")
            expired.set()
            process.kill()

    def _drain_stdout(self, stream: IO[str]) -> None:
        name = Path(self.executable).name
        for line in stream:
            logger.debug(f"{name}: {line.rstrip()}")
        stream.close()
