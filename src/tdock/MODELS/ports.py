"""
Port table of a running container.
"""
from typing import Dict, Optional

import structlog

logger = structlog.get_logger(__name__)


class Ports:
    """
    Mapping from container-internal ports to the host ports they are
    published on. Ports that are not published are simply absent.
    """
    def __init__(self, mapping: Optional[Dict[int, int]] = None):
        self._mapping: Dict[int, int] = dict(mapping or {})

    def add_mapping(self, internal: int, host: int) -> "Ports":
        """
        Registers the mapping of an exposed port.

        :param internal: Port inside the container.
        :param host: Port on the host it is published to.
        :return: The table itself, for chaining.
        """
        logger.debug("registering_port_mapping", internal=internal, host=host)
        self._mapping[internal] = host
        return self

    def map_to_host_port(self, internal: int) -> Optional[int]:
        """
        Returns the host port for the given internal port, or None if the
        port is not published.
        """
        return self._mapping.get(internal)

    def __contains__(self, internal: int) -> bool:
        return internal in self._mapping

    def __len__(self) -> int:
        return len(self._mapping)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Ports):
            return NotImplemented
        return self._mapping == other._mapping

    def as_dict(self) -> Dict[int, int]:
        return dict(self._mapping)

    def __repr__(self) -> str:
        return f"Ports({self._mapping!r})"
