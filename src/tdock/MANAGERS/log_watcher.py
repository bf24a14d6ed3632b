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
Watching container log streams: waiting for a readiness message within a
deadline, and plain tailing.
"""
import asyncio
from typing import AsyncIterator

import structlog

from ..exceptions import EndOfStream, WaitDurationExpired, WaitIOError

logger = structlog.get_logger(__name__)


async def wait_for_message(lines: AsyncIterator[str], message: str, timeout: float) -> int:
    """
    Consumes ``lines`` until one contains ``message``.

    Every single read is bounded by what is left of ``timeout``, so a stream
    that stalls in the middle of a line fails as soon as the deadline passes
    instead of hanging until the next line arrives.

    Args:
        lines: Source of log lines.
        message: Case-sensitive substring to look for.
        timeout: Seconds, measured from the call, before giving up.

    Returns:
        int: Number of lines compared, including the matching one.

    Raises:
        EndOfStream: The stream closed without a matching line.
        WaitDurationExpired: The deadline passed before a matching line.
        WaitIOError: Reading the stream failed.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    compared = 0

    while True:
        remaining = deadline - loop.time()
        if remaining <= 0:
            logger.error("wait_duration_expired", message=message, compared_lines=compared)
            raise WaitDurationExpired(timeout, compared)
        try:
            line = await asyncio.wait_for(lines.__anext__(), timeout=remaining)
        except StopAsyncIteration:
            logger.error("end_of_stream", message=message, compared_lines=compared)
            raise EndOfStream(compared) from None
        except asyncio.TimeoutError:
            logger.error("wait_duration_expired", message=message, compared_lines=compared)
            raise WaitDurationExpired(timeout, compared) from None
        except OSError as e:
            logger.error("log_stream_io_error", error=str(e), compared_lines=compared)
            raise WaitIOError(e, compared) from e

        compared += 1
        if message in line:
            logger.info("found_message", message=message, compared_lines=compared)
            return compared


async def tail(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    """
    Forwards every line until the source closes. Nothing is matched, so
    this never fails for lack of a message; a closed source cannot be
    tailed again.
    """
    count = 0
    async for line in lines:
        count += 1
        yield line
    logger.debug("log_stream_closed", lines=count)
