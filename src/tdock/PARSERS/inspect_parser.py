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
Parser for the JSON printed by the engine's ``inspect`` verb.
Only the container id and the published port bindings are consumed.
"""
import json
from typing import Dict, List, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ..exceptions import InspectionError
from ..MODELS.ports import Ports

logger = structlog.get_logger(__name__)


class PortBinding(BaseModel):
    """A single host binding of a container port."""

    model_config = ConfigDict(populate_by_name=True)

    host_ip: str = Field(default="", alias="HostIp")
    host_port: str = Field(alias="HostPort")


class NetworkSettings(BaseModel):
    """The network section of an inspected container."""

    model_config = ConfigDict(populate_by_name=True)

    ports: Optional[Dict[str, Optional[List[PortBinding]]]] = Field(default=None, alias="Ports")


class ContainerInfo(BaseModel):
    """
    Projection of the engine's container description.

    Example input (abridged)::

        {"Id": "3f2a...", "NetworkSettings": {"Ports": {
            "5432/tcp": [{"HostIp": "0.0.0.0", "HostPort": "49155"}],
            "5433/tcp": null}}}
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="Id")
    network_settings: NetworkSettings = Field(
        default_factory=NetworkSettings, alias="NetworkSettings"
    )

    def get_ports(self) -> Ports:
        """
        Builds the port table from the reported bindings.

        The protocol suffix is dropped from each key and the first reported
        binding wins. Ports without any host binding are skipped.

        Raises:
            InspectionError: If a port number is not a valid port.
        """
        ports = Ports()
        for internal_key, bindings in (self.network_settings.ports or {}).items():
            if not bindings:
                logger.debug("port_not_mapped_to_host", port=internal_key, container_id=self.id)
                continue

            internal = parse_port(internal_key.split("/", 1)[0])
            if internal in ports:
                logger.debug("port_already_mapped", port=internal_key, container_id=self.id)
                continue

            ports.add_mapping(internal, parse_port(bindings[0].host_port))
        return ports


_INFO_LIST = TypeAdapter(List[ContainerInfo])


def parse_port(value: str) -> int:
    """
    Parses a port number.

    Raises:
        InspectionError: If the value is not an integer between 0 and 65535.
    """
    try:
        port = int(value)
    except (TypeError, ValueError) as e:
        raise InspectionError(f"Failed to parse {value!r} as a port number") from e
    if not 0 <= port <= 65535:
        raise InspectionError(f"Port {port} is out of range")
    return port


def parse_container_info(payload: Union[str, bytes]) -> ContainerInfo:
    """
    Parses the output of ``inspect <id>``.

    The engine prints a JSON array; exactly one container description is
    expected since a single id was inspected.

    Args:
        payload: Raw standard output of the inspect command.

    Returns:
        The parsed ContainerInfo.

    Raises:
        InspectionError: On malformed JSON, unexpected structure, or a
            number of descriptions other than one.
    """
    try:
        raw = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InspectionError(f"Inspect output is not valid JSON: {e}") from e

    try:
        infos = _INFO_LIST.validate_python(raw)
    except ValidationError as e:
        raise InspectionError(f"Unexpected inspect output: {e}") from e

    if len(infos) != 1:
        raise InspectionError(f"Expected exactly one container description, got {len(infos)}")

    info = infos[0]
    logger.debug("fetched_container_info", container_id=info.id)
    return info
