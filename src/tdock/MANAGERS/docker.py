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
Blocking API: a client owning one event loop thread, and container handles
whose methods block on that loop.
"""
import atexit
import threading
from typing import List, Optional

import structlog

from ..MODELS.image import GenericImage
from ..MODELS.ports import Ports
from ..MODELS.settings import EngineSettings
from ..RUNNERS.blocking import BackgroundWorker, BlockingRunner
from ..RUNNERS.process_runner import EngineRunner
from .container import ContainerState, DockerContainer
from .lifecycle_guard import Teardown
from .startup_registry import StartupRegistry

logger = structlog.get_logger(__name__)


class Docker:
    """
    Client for starting containers from synchronous code.

    Each client runs its coroutines on one dedicated loop thread. Closing the
    client disposes every container it started that is still open, then
    stops the loop. A client that is never closed is closed at interpreter
    exit.

    Usage:
        with Docker() as docker:
            with docker.run(image) as container:
                port = container.get_host_port(5432)
    """

    def __init__(self,
                 settings: Optional[EngineSettings] = None,
                 runner: Optional[EngineRunner] = None,
                 registry: Optional[StartupRegistry] = None):
        """
        Initializes the client.

        :param settings: Engine settings, read from the environment when omitted.
        :param runner: Engine runner, built from the settings when omitted.
        :param registry: Start time registry, a fresh one when omitted.
        """
        self.settings = settings or EngineSettings.from_env()
        self.runner = runner or EngineRunner.from_settings(self.settings)
        self.registry = registry or StartupRegistry()
        self.loop = BlockingRunner()
        self._containers: List["Container"] = []
        self._lock = threading.Lock()
        atexit.register(self.close)

    def run(self, image: GenericImage, keep_containers: Optional[bool] = None) -> "Container":
        """
        Starts a container and blocks until it is ready.

        :param image: Image to start.
        :param keep_containers: Overrides ``KEEP_CONTAINERS`` for teardown.
        :return: The ready container.
        :raises EngineLaunchError: The engine could not be executed.
        :raises ContainerCreationError: The engine did not report an id.
        :raises WaitError: The readiness condition failed.
        """
        handle = self.loop.run(DockerContainer.create(
            image,
            runner=self.runner,
            settings=self.settings,
            registry=self.registry,
            keep_containers=keep_containers,
        ))
        container = Container(handle, self)
        with self._lock:
            self._containers.append(container)
        return container

    def close(self):
        """
        Disposes remaining containers and stops the loop thread.
        """
        atexit.unregister(self.close)
        with self._lock:
            containers, self._containers = self._containers, []
        if containers:
            logger.info("disposing_open_containers", count=len(containers))
        for container in containers:
            container.close()
        self.loop.close()

    def _forget(self, container: "Container"):
        with self._lock:
            if container in self._containers:
                self._containers.remove(container)

    def __enter__(self) -> "Docker":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class Container:
    """
    Blocking view of a :class:`DockerContainer`.
    """

    def __init__(self, handle: DockerContainer, client: Docker):
        self.handle = handle
        self.client = client

    @property
    def id(self) -> str:
        return self.handle.id

    @property
    def image(self) -> GenericImage:
        return self.handle.image

    @property
    def state(self) -> ContainerState:
        return self.handle.state

    @property
    def closed(self) -> bool:
        return self.handle.closed

    def ports(self) -> Ports:
        return self.client.loop.run(self.handle.ports())

    def get_host_port(self, internal_port: int) -> Optional[int]:
        """
        Returns the host port an internal port is published on, or None.
        """
        return self.client.loop.run(self.handle.get_host_port(internal_port))

    def print_stdout(self) -> int:
        """Logs stdout lines; blocks until the container's log closes."""
        return self.client.loop.run(self.handle.print_stdout())

    def print_stderr(self) -> int:
        """Logs stderr lines; blocks until the container's log closes."""
        return self.client.loop.run(self.handle.print_stderr())

    def run_background_logs(self, stdout: bool = True, stderr: bool = False) -> Optional[BackgroundWorker]:
        return self.handle.run_background_logs(stdout=stdout, stderr=stderr)

    def close(self) -> Optional[Teardown]:
        """
        Stops or removes the container. Only the first call has an effect.
        """
        if self.handle.closed:
            return None
        self.client._forget(self)
        return self.client.loop.run(self.handle.close())

    def __enter__(self) -> "Container":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __repr__(self) -> str:
        return f"Container(id={self.id!r}, state={self.state.value})"
