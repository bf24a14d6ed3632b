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
Process-wide settings controlling how the engine is invoked and how
containers are torn down.
"""
import os
import shlex
from typing import Dict, List, Mapping, Optional

from dotenv import dotenv_values
from pydantic import BaseModel, Field

KEEP_CONTAINERS_VAR = "KEEP_CONTAINERS"
ENGINE_VAR = "TDOCK_ENGINE"
LOG_GRACE_PERIOD_VAR = "TDOCK_LOG_GRACE_PERIOD"
TERMINATE_TIMEOUT_VAR = "TDOCK_TERMINATE_TIMEOUT"


def parse_keep_containers(value: Optional[str]) -> bool:
    """
    Interprets the ``KEEP_CONTAINERS`` toggle.

    Only the literal ``true`` (any case) keeps containers. Anything else,
    including a missing or malformed value, means remove.
    """
    if value is None:
        return False
    return value.strip().lower() == "true"


def keep_containers_from_env(environ: Optional[Mapping[str, str]] = None) -> bool:
    """
    Reads ``KEEP_CONTAINERS`` from the given mapping or the live process
    environment.
    """
    environ = os.environ if environ is None else environ
    return parse_keep_containers(environ.get(KEEP_CONTAINERS_VAR))


class EngineSettings(BaseModel):
    """
    Settings for driving the container engine.
    """
    engine: str = "docker"
    keep_containers: bool = False
    log_grace_period: float = Field(default=1.0, ge=0)
    terminate_timeout: float = Field(default=5.0, gt=0)

    @property
    def engine_command(self) -> List[str]:
        """The engine invocation split into argv form."""
        return shlex.split(self.engine)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None,
                 environ: Optional[Mapping[str, str]] = None) -> "EngineSettings":
        """
        Builds settings from environment variables.

        Args:
            env_file: Optional .env file. Values in the process environment
                take precedence over values from the file.
            environ: Mapping to read instead of ``os.environ``.

        Returns:
            EngineSettings populated from the environment.
        """
        merged: Dict[str, str] = {}
        if env_file and os.path.exists(env_file):
            merged.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
        merged.update(os.environ if environ is None else environ)

        values: Dict[str, object] = {
            "keep_containers": parse_keep_containers(merged.get(KEEP_CONTAINERS_VAR)),
        }
        if merged.get(ENGINE_VAR):
            values["engine"] = merged[ENGINE_VAR]
        if merged.get(LOG_GRACE_PERIOD_VAR):
            values["log_grace_period"] = float(merged[LOG_GRACE_PERIOD_VAR])
        if merged.get(TERMINATE_TIMEOUT_VAR):
            values["terminate_timeout"] = float(merged[TERMINATE_TIMEOUT_VAR])
        return cls(**values)
