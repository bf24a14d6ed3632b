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
Exactly-once teardown of a container.
"""
import threading
from enum import Enum
from typing import Optional

import structlog

from ..exceptions import TdockError
from ..MODELS.settings import keep_containers_from_env
from ..RUNNERS.process_runner import EngineRunner

logger = structlog.get_logger(__name__)


class Teardown(str, Enum):
    """How a container was disposed of."""

    STOPPED = "stopped"
    REMOVED = "removed"


class LifecycleGuard:
    """
    Owns the teardown obligation for one container.

    The first call to :meth:`release` either stops the container (when
    ``KEEP_CONTAINERS`` is ``true``) or force-removes it with its volumes.
    Every later call, from any thread, is a no-op.
    """

    def __init__(self, container_id: str, runner: EngineRunner,
                 keep_containers: Optional[bool] = None):
        """
        Args:
            container_id: Container to tear down.
            runner: Runner used to issue stop/rm.
            keep_containers: Overrides ``KEEP_CONTAINERS``. When None the
                environment is read at release time.
        """
        self.container_id = container_id
        self.runner = runner
        self.keep_containers = keep_containers
        self._lock = threading.Lock()
        self._released = False
        self.outcome: Optional[Teardown] = None

    @property
    def released(self) -> bool:
        return self._released

    def _claim(self) -> bool:
        with self._lock:
            if self._released:
                return False
            self._released = True
            return True

    def _should_keep(self) -> bool:
        if self.keep_containers is not None:
            return self.keep_containers
        return keep_containers_from_env()

    async def release(self) -> Optional[Teardown]:
        """
        Stops or removes the container, once.

        Failures are logged and never raised since this runs while resources
        are being released.

        Returns:
            The teardown performed by this call, or None if the container had
            already been released.
        """
        if not self._claim():
            logger.debug("container_already_released", container_id=self.container_id)
            return None

        if self._should_keep():
            self.outcome = Teardown.STOPPED
            logger.debug("stopping_docker_container", container_id=self.container_id)
            action = self.runner.stop
        else:
            self.outcome = Teardown.REMOVED
            logger.debug("deleting_docker_container", container_id=self.container_id)
            action = self.runner.rm

        try:
            await action(self.container_id)
        except (TdockError, OSError) as e:
            logger.error(
                "container_teardown_failed",
                container_id=self.container_id,
                teardown=self.outcome.value,
                error=str(e),
            )
        return self.outcome
