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
Lifecycle of a single container: creation, readiness, ports, logs and
teardown. Everything here is a coroutine; the blocking API in
``MANAGERS.docker`` drives the same code from synchronous callers.
"""
import asyncio
import time
from contextlib import asynccontextmanager
from enum import Enum
from typing import AsyncIterator, Optional

import structlog

from ..exceptions import ContainerClosedError, TdockError
from ..MODELS.image import GenericImage, LogStream, WaitForLogMessage
from ..MODELS.ports import Ports
from ..MODELS.settings import EngineSettings
from ..RUNNERS.blocking import BackgroundWorker
from ..RUNNERS.process_runner import EngineRunner
from .lifecycle_guard import LifecycleGuard, Teardown
from .log_watcher import tail, wait_for_message
from .startup_registry import StartupRegistry

logger = structlog.get_logger(__name__)


class ContainerState(str, Enum):
    """Lifecycle state of a container handle."""

    CREATED = "created"
    WAITING_READY = "waiting_ready"
    READY = "ready"
    STOPPED = "stopped"
    REMOVED = "removed"


class DockerContainer:
    """
    Handle to a running, ready container.

    Handles are only obtained through :meth:`create`, which returns once the
    image's readiness condition holds. Disposing the handle (``close()`` or
    leaving ``async with``) stops or removes the container exactly once.
    A handle that is never disposed leaves its container running; use it
    in ``async with`` or through :class:`tdock.Docker`, which disposes
    leftover containers when it closes or the interpreter exits.

    Usage:
        image = GenericImage.new("postgres:11-alpine").with_wait_for(
            WaitFor.message_on_stderr("ready to accept connections", 20))
        async with await DockerContainer.create(image) as container:
            port = await container.get_host_port(5432)
    """

    def __init__(self,
                 container_id: str,
                 image: GenericImage,
                 runner: EngineRunner,
                 created_at: float,
                 log_grace_period: float = 1.0,
                 keep_containers: Optional[bool] = None):
        self._id = container_id
        self._image = image
        self.runner = runner
        self.created_at = created_at
        self.log_grace_period = log_grace_period
        self.guard = LifecycleGuard(container_id, runner, keep_containers)
        self.state = ContainerState.CREATED
        self._log_grace_elapsed = False

    @classmethod
    async def create(cls,
                     image: GenericImage,
                     runner: Optional[EngineRunner] = None,
                     settings: Optional[EngineSettings] = None,
                     registry: Optional[StartupRegistry] = None,
                     keep_containers: Optional[bool] = None) -> "DockerContainer":
        """
        Starts a container from ``image`` and waits until it is ready.

        Args:
            image: Image to start.
            runner: Engine runner, built from ``settings`` when omitted.
            settings: Engine settings, read from the environment when omitted.
            registry: Registry the start time is recorded in.
            keep_containers: Overrides ``KEEP_CONTAINERS`` for teardown.
                When None, ``settings.keep_containers`` applies if set.

        Returns:
            A ready container.

        Raises:
            EngineLaunchError: The engine could not be executed.
            ContainerCreationError: The engine did not report an id.
            WaitError: The readiness condition failed. The started container
                has been torn down already.
        """
        settings = settings or EngineSettings.from_env()
        runner = runner or EngineRunner.from_settings(settings)
        if keep_containers is None and settings.keep_containers:
            # Unset settings leave the decision to KEEP_CONTAINERS at release.
            keep_containers = True

        logger.info("starting_docker_container", image=image.descriptor)
        container_id = await runner.run_container(image)
        if registry is not None:
            created_at = registry.register(container_id)
        else:
            created_at = time.monotonic()

        container = cls(
            container_id,
            image,
            runner,
            created_at,
            log_grace_period=settings.log_grace_period,
            keep_containers=keep_containers,
        )
        try:
            await container._block_until_ready()
        except (TdockError, asyncio.CancelledError):
            await container.close()
            raise
        return container

    async def _block_until_ready(self):
        self.state = ContainerState.WAITING_READY
        logger.debug("waiting_for_container", container_id=self._id)
        wait_for = self._image.wait_for
        if isinstance(wait_for, WaitForLogMessage):
            # A fresh follow replays the log from the start, so a message
            # printed before we attached is still seen.
            async with self.runner.follow_logs(self._id, wait_for.stream) as lines:
                await wait_for_message(lines, wait_for.message, wait_for.timeout)
        self.state = ContainerState.READY
        logger.debug("container_ready", container_id=self._id)

    @property
    def id(self) -> str:
        return self._id

    @property
    def short_id(self) -> str:
        return self._id[:6]

    @property
    def image(self) -> GenericImage:
        return self._image

    @property
    def closed(self) -> bool:
        return self.guard.released

    def _ensure_open(self):
        if self.guard.released:
            raise ContainerClosedError(f"Container {self._id} has already been disposed")

    async def ports(self) -> Ports:
        """
        Inspects the container and returns its published ports.

        Raises:
            InspectionError: If the inspect output could not be parsed.
        """
        self._ensure_open()
        info = await self.runner.inspect(self._id)
        return info.get_ports()

    async def get_host_port(self, internal_port: int) -> Optional[int]:
        """
        Returns the host port an internal port is published on.

        This does not publish anything; ports the image does not expose
        cannot be resolved. The engine is queried on every call.

        :param internal_port: Port inside the container.
        :return: The host port, or None if the port is not published.
        """
        ports = await self.ports()
        host_port = ports.map_to_host_port(internal_port)
        if host_port is None:
            logger.warning("unable_to_resolve_port", port=internal_port, container_id=self._id)
        else:
            logger.debug(
                "resolved_port", port=internal_port, host_port=host_port, container_id=self._id
            )
        return host_port

    async def _await_log_grace(self):
        """
        Sleeps out the rest of the grace period after creation before the
        first log access of this handle.
        """
        if self._log_grace_elapsed:
            return
        remaining = self.log_grace_period - (time.monotonic() - self.created_at)
        if remaining > 0:
            await asyncio.sleep(remaining)
        self._log_grace_elapsed = True

    async def log_stream(self, stream: LogStream) -> AsyncIterator[str]:
        """
        Yields the lines of one log stream until the container's log closes.
        """
        self._ensure_open()
        await self._await_log_grace()
        async with self.runner.follow_logs(self._id, stream) as lines:
            async for line in tail(lines):
                yield line

    def stdout_stream(self) -> AsyncIterator[str]:
        return self.log_stream(LogStream.STDOUT)

    def stderr_stream(self) -> AsyncIterator[str]:
        return self.log_stream(LogStream.STDERR)

    async def print_stdout(self) -> int:
        """
        Logs every stdout line until the stream closes.

        :return: Number of lines printed.
        """
        count = 0
        async for line in self.stdout_stream():
            count += 1
            logger.info("container_stdout", container=self.short_id, line=line)
        return count

    async def print_stderr(self) -> int:
        """
        Logs every stderr line until the stream closes.

        :return: Number of lines printed.
        """
        count = 0
        async for line in self.stderr_stream():
            count += 1
            logger.warning("container_stderr", container=self.short_id, line=line)
        return count

    async def _print_logs(self, stdout: bool, stderr: bool):
        tails = []
        if stdout:
            tails.append(self.print_stdout())
        if stderr:
            tails.append(self.print_stderr())
        await asyncio.gather(*tails)

    def run_background_logs(self, stdout: bool = True, stderr: bool = False) -> Optional[BackgroundWorker]:
        """
        Tails logs on a separate thread that keeps running until the
        container's log closes.

        Args:
            stdout: Tail stdout.
            stderr: Tail stderr.

        Returns:
            The started worker, or None if neither stream was requested.
        """
        if not stdout and not stderr:
            logger.info("background_logs_nothing_requested", container_id=self._id)
            return None
        self._ensure_open()
        worker = BackgroundWorker(
            f"tdock-logs-{self.short_id}", lambda: self._print_logs(stdout, stderr)
        )
        logger.debug(
            "starting_background_logs", container_id=self._id, stdout=stdout, stderr=stderr
        )
        return worker.start()

    async def close(self) -> Optional[Teardown]:
        """
        Stops or removes the container. Only the first call has an effect.

        :return: The teardown performed, or None if already disposed.
        """
        outcome = await self.guard.release()
        if outcome is Teardown.STOPPED:
            self.state = ContainerState.STOPPED
        elif outcome is Teardown.REMOVED:
            self.state = ContainerState.REMOVED
        return outcome

    async def __aenter__(self) -> "DockerContainer":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def __repr__(self) -> str:
        return f"DockerContainer(id={self._id!r}, image={self._image.descriptor!r}, state={self.state.value})"


@asynccontextmanager
async def run_container(image: GenericImage, **kwargs) -> AsyncIterator[DockerContainer]:
    """
    Starts a ready container for the duration of an ``async with`` block.

    Keyword arguments are passed to :meth:`DockerContainer.create`.
    """
    container = await DockerContainer.create(image, **kwargs)
    try:
        yield container
    finally:
        await container.close()
