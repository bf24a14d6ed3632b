# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Execution of engine commands as child processes, with line-oriented access
to their output.
"""
import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Sequence

import structlog

from ..exceptions import ContainerCreationError, EngineLaunchError, TeardownError
from ..MODELS.image import GenericImage, LogStream
from ..MODELS.settings import EngineSettings
from ..PARSERS.inspect_parser import ContainerInfo, parse_container_info
from . import engine_commands

logger = structlog.get_logger(__name__)

PIPE = asyncio.subprocess.PIPE
DEVNULL = asyncio.subprocess.DEVNULL


@dataclass
class CompletedCommand:
    """Output of an engine command that ran to completion."""

    command: List[str]
    returncode: Optional[int]
    stdout: bytes
    stderr: bytes

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")


def decode_line(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").rstrip("\r\n")


async def iter_lines(stream: asyncio.StreamReader) -> AsyncIterator[str]:
    """
    Yields decoded lines from ``stream`` until it closes.

    Lines longer than the reader's buffer limit are reassembled, so no line
    length limit applies. A trailing line without a newline is still yielded.
    """
    pending = bytearray()
    while True:
        try:
            chunk = await stream.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            pending += e.partial
            if pending:
                yield decode_line(bytes(pending))
            return
        except asyncio.LimitOverrunError as e:
            pending += await stream.readexactly(e.consumed)
            continue
        pending += chunk
        yield decode_line(bytes(pending))
        pending.clear()


class EngineRunner:
    """
    Runs the container engine CLI. One instance can be shared by any number
    of containers; it holds no per-container state.
    """
    def __init__(self, engine: Optional[Sequence[str]] = None, terminate_timeout: float = 5.0):
        """
        Initializes the runner.

        Args:
            engine (Optional[Sequence[str]]): argv prefix used to invoke the
                engine. Defaults to ``["docker"]``.
            terminate_timeout (float): Seconds to wait for a log-follow
                process after SIGTERM before killing it.
        """
        self.engine = list(engine) if engine else ["docker"]
        self.terminate_timeout = terminate_timeout

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> "EngineRunner":
        return cls(settings.engine_command, terminate_timeout=settings.terminate_timeout)

    def build_command(self, verb: str, args: Sequence[str]) -> List[str]:
        return [*self.engine, verb, *args]

    async def spawn(self,
                    verb: str,
                    args: Sequence[str],
                    capture_stdout: bool = True,
                    capture_stderr: bool = False) -> asyncio.subprocess.Process:
        """
        Starts an engine process. Standard input is never connected.

        Args:
            verb (str): Engine verb (run, logs, inspect, rm, stop).
            args (Sequence[str]): Arguments following the verb.
            capture_stdout (bool): Pipe standard output.
            capture_stderr (bool): Pipe standard error.

        Returns:
            asyncio.subprocess.Process: The started process.

        Raises:
            EngineLaunchError: If the engine binary could not be executed.
        """
        command = self.build_command(verb, args)
        logger.debug("executing_engine_command", command=" ".join(command))
        try:
            return await asyncio.create_subprocess_exec(
                *command,
                stdin=DEVNULL,
                stdout=PIPE if capture_stdout else DEVNULL,
                stderr=PIPE if capture_stderr else DEVNULL,
            )
        except OSError as e:
            logger.error("engine_launch_failed", command=" ".join(command), error=str(e))
            raise EngineLaunchError(command, e) from e

    async def execute(self, verb: str, args: Sequence[str]) -> CompletedCommand:
        """
        Runs an engine command to completion and collects its output.
        """
        process = await self.spawn(verb, args, capture_stdout=True, capture_stderr=True)
        stdout, stderr = await process.communicate()
        return CompletedCommand(
            command=self.build_command(verb, args),
            returncode=process.returncode,
            stdout=stdout or b"",
            stderr=stderr or b"",
        )

    async def terminate(self, process: asyncio.subprocess.Process) -> None:
        """
        Stops a process by sending SIGTERM, followed by SIGKILL if it doesn't stop.
        """
        if process.returncode is not None:
            return
        try:
            process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=self.terminate_timeout)
        except asyncio.TimeoutError:
            logger.warning("engine_process_kill", pid=process.pid)
            try:
                process.kill()
            except ProcessLookupError:
                return
            await process.wait()

    async def run_container(self, image: GenericImage) -> str:
        """
        Starts a detached container and returns its id, the first line the
        engine prints.

        Raises:
            EngineLaunchError: If the engine could not be executed.
            ContainerCreationError: If no id was reported.
        """
        result = await self.execute("run", engine_commands.run_args(image))
        lines = result.stdout.decode("utf-8", errors="replace").splitlines()
        container_id = lines[0].strip() if lines else ""
        if not container_id:
            raise ContainerCreationError(image.descriptor, result.returncode, result.stderr_text)
        if result.returncode:
            logger.warning(
                "engine_run_nonzero_exit",
                container_id=container_id,
                returncode=result.returncode,
                stderr=result.stderr_text.strip(),
            )
        return container_id

    @asynccontextmanager
    async def follow_logs(self, container_id: str, stream: LogStream) -> AsyncIterator[AsyncIterator[str]]:
        """
        Opens ``logs -f`` for a container and yields the lines of one of its
        streams. The follow process is terminated when the block exits, on
        every outcome.
        """
        want_stderr = stream is LogStream.STDERR
        process = await self.spawn(
            "logs",
            engine_commands.logs_args(container_id),
            capture_stdout=not want_stderr,
            capture_stderr=want_stderr,
        )
        reader = process.stderr if want_stderr else process.stdout
        lines = iter_lines(reader)
        try:
            yield lines
        finally:
            await lines.aclose()
            await self.terminate(process)

    async def inspect(self, container_id: str) -> ContainerInfo:
        """
        Runs ``inspect`` for a container and parses the result.

        Raises:
            EngineLaunchError: If the engine could not be executed.
            InspectionError: If the output could not be parsed.
        """
        result = await self.execute("inspect", engine_commands.inspect_args(container_id))
        return parse_container_info(result.stdout)

    async def rm(self, container_id: str) -> None:
        """
        Force-removes a container together with its anonymous volumes.

        Raises:
            TeardownError: If the engine reported a failure.
        """
        result = await self.execute("rm", engine_commands.rm_args(container_id))
        if result.returncode:
            raise TeardownError(f"rm of {container_id} failed: {result.stderr_text.strip()}")

    async def stop(self, container_id: str) -> None:
        """
        Stops a container, keeping it around for inspection.

        Raises:
            TeardownError: If the engine reported a failure.
        """
        result = await self.execute("stop", engine_commands.stop_args(container_id))
        if result.returncode:
            raise TeardownError(f"stop of {container_id} failed: {result.stderr_text.strip()}")
