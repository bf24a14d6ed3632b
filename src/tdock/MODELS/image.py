"""
Models for describing the image a container is started from, including its
readiness check.
"""
from typing import Annotated, List, Dict, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum


class LogStream(str, Enum):
    """
    Output stream of a container's log.
    """
    STDOUT = "stdout"
    STDERR = "stderr"


class WaitForNothing(BaseModel):
    """
    No readiness check, the container is ready as soon as it has an id.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["nothing"] = "nothing"


class WaitForLogMessage(BaseModel):
    """
    Wait until a log line containing ``message`` shows up on ``stream``.

    ``timeout`` is measured in seconds from the moment the wait begins.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["log_message"] = "log_message"
    message: str = Field(min_length=1)
    stream: LogStream = LogStream.STDOUT
    timeout: float = Field(gt=0)


WaitCondition = Annotated[
    Union[WaitForNothing, WaitForLogMessage], Field(discriminator="kind")
]


class WaitFor:
    """
    Constructors for readiness conditions.
    """
    @staticmethod
    def nothing() -> WaitForNothing:
        return WaitForNothing()

    @staticmethod
    def message_on_stdout(message: str, timeout: float) -> WaitForLogMessage:
        return WaitForLogMessage(message=message, stream=LogStream.STDOUT, timeout=timeout)

    @staticmethod
    def message_on_stderr(message: str, timeout: float) -> WaitForLogMessage:
        return WaitForLogMessage(message=message, stream=LogStream.STDERR, timeout=timeout)


class GenericImage(BaseModel):
    """
    The full description of a container to start: image reference,
    environment, mounts, network and readiness condition.

    Instances are immutable; the ``with_*`` builders return modified copies.
    """
    model_config = ConfigDict(frozen=True)

    descriptor: str = Field(min_length=1)
    env_vars: Dict[str, str] = {}
    args: List[str] = []
    mounts: List[Dict[str, str]] = []
    network: Optional[str] = None
    wait_for: WaitCondition = Field(default_factory=WaitForNothing)

    @classmethod
    def new(cls, descriptor: str) -> "GenericImage":
        return cls(descriptor=descriptor)

    def with_env_var(self, key: str, value: str) -> "GenericImage":
        return self.model_copy(update={"env_vars": {**self.env_vars, key: value}})

    def with_mount(self, mount: Dict[str, str]) -> "GenericImage":
        return self.model_copy(update={"mounts": [*self.mounts, dict(mount)]})

    def with_network(self, network: str) -> "GenericImage":
        return self.model_copy(update={"network": network})

    def with_args(self, args: List[str]) -> "GenericImage":
        return self.model_copy(update={"args": list(args)})

    def with_wait_for(self, wait_for: Union[WaitForNothing, WaitForLogMessage]) -> "GenericImage":
        return self.model_copy(update={"wait_for": wait_for})
