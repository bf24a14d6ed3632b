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
tdock - disposable containers for tests

Starts containers through an installed engine CLI, waits until they are
ready, resolves their published ports, tails their logs and guarantees
they are stopped or removed again.
"""

from .exceptions import (
    ContainerClosedError,
    ContainerCreationError,
    EndOfStream,
    EngineLaunchError,
    InspectionError,
    TdockError,
    WaitDurationExpired,
    WaitError,
    WaitIOError,
)
from .MANAGERS.container import ContainerState, DockerContainer, run_container
from .MANAGERS.docker import Container, Docker
from .MANAGERS.lifecycle_guard import Teardown
from .MODELS.image import GenericImage, LogStream, WaitFor
from .MODELS.ports import Ports
from .MODELS.settings import EngineSettings

__version__ = "0.1.0"
__author__ = "Michael Maillet, Damien Davison, Sacha Davison"
__license__ = "Apache-2.0"
