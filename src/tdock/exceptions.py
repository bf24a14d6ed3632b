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
Exceptions raised while driving the container engine.
"""
from typing import List, Optional


class TdockError(Exception):
    """Base exception for all tdock failures."""

    pass


class EngineLaunchError(TdockError):
    """Raised when the engine binary itself could not be started."""

    def __init__(self, command: List[str], cause: OSError):
        self.command = command
        self.cause = cause
        super().__init__(f"Failed to execute engine command {' '.join(command)!r}: {cause}")


class ContainerCreationError(TdockError):
    """Raised when the run verb did not report a container identifier."""

    def __init__(self, descriptor: str, returncode: Optional[int], stderr: str = ""):
        self.descriptor = descriptor
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or "no output"
        super().__init__(
            f"Engine did not report a container id for {descriptor} "
            f"(exit code {returncode}): {detail}"
        )


class WaitError(TdockError):
    """
    Base class for readiness failures.

    ``compared_lines`` is the number of log lines inspected before giving up.
    """

    def __init__(self, message: str, compared_lines: int = 0):
        self.compared_lines = compared_lines
        super().__init__(message)


class EndOfStream(WaitError):
    """The log stream closed before the expected message appeared."""

    def __init__(self, compared_lines: int = 0):
        super().__init__(
            f"End of stream reached after comparing {compared_lines} lines", compared_lines
        )


class WaitDurationExpired(WaitError):
    """The expected message did not appear within the wait duration."""

    def __init__(self, timeout: float, compared_lines: int = 0):
        self.timeout = timeout
        super().__init__(
            f"Wait duration of {timeout}s expired after comparing {compared_lines} lines",
            compared_lines,
        )


class WaitIOError(WaitError):
    """Reading the log stream failed."""

    def __init__(self, cause: OSError, compared_lines: int = 0):
        self.cause = cause
        super().__init__(f"I/O error while reading log stream: {cause}", compared_lines)


class InspectionError(TdockError):
    """The engine's inspect output could not be used."""

    pass


class TeardownError(TdockError):
    """The engine reported a failure while stopping or removing a container."""

    pass


class ContainerClosedError(TdockError):
    """An operation was attempted on a container that was already disposed."""

    pass
