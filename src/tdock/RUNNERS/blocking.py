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
Bridges between coroutines and blocking callers: an event loop running on a
dedicated thread, and fire-and-forget background workers.
"""
import asyncio
import threading
from typing import Any, Awaitable, Callable, Coroutine, Optional, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class BlockingRunner:
    """
    Drives coroutines to completion from synchronous code.

    The runner owns one event loop on one daemon thread, started on first
    use. Every call is scheduled on that loop, so blocking callers never
    create a loop per call and never touch a loop the caller may own.
    """

    def __init__(self, name: str = "tdock-loop"):
        """
        Initializes the runner.

        :param name: Name of the loop thread.
        """
        self.name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._closed = False

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """
        Starts the loop thread if it is not running yet.
        """
        with self._lock:
            if self._closed:
                raise RuntimeError(f"{self.name} is closed")
            if self._thread is not None:
                return
            ready = threading.Event()
            self._loop = asyncio.new_event_loop()
            self._thread = threading.Thread(
                target=self._run_loop, args=(ready,), name=self.name, daemon=True
            )
            self._thread.start()
            ready.wait()

    def _run_loop(self, ready: threading.Event):
        loop = self._loop
        asyncio.set_event_loop(loop)
        loop.call_soon(ready.set)
        try:
            loop.run_forever()
        finally:
            try:
                loop.run_until_complete(loop.shutdown_asyncgens())
            finally:
                loop.close()

    def run(self, coro: Coroutine[Any, Any, T], timeout: Optional[float] = None) -> T:
        """
        Runs a coroutine on the loop thread and blocks until it finishes.

        :param coro: Coroutine to run.
        :param timeout: Seconds to wait for the result.
        :return: The coroutine's result; its exception is re-raised here.
        """
        if threading.current_thread() is self._thread:
            coro.close()
            raise RuntimeError("BlockingRunner.run() called from its own loop thread")
        try:
            self.start()
        except RuntimeError:
            coro.close()
            raise
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result(timeout)

    def close(self, timeout: float = 5.0):
        """
        Stops the loop and joins its thread. Safe to call more than once.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            loop, thread = self._loop, self._thread
        if loop is not None and thread is not None:
            loop.call_soon_threadsafe(loop.stop)
            thread.join(timeout=timeout)

    def __enter__(self) -> "BlockingRunner":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class BackgroundWorker:
    """
    Runs a coroutine on its own thread and event loop, detached from the
    caller. Failures are logged and kept on :attr:`error`; nothing is
    raised back to the caller.
    """

    def __init__(self, name: str, factory: Callable[[], Awaitable[Any]]):
        """
        :param name: Thread name.
        :param factory: Callable returning the coroutine to run. It is called
            on the worker thread.
        """
        self.name = name
        self.factory = factory
        self.error: Optional[BaseException] = None
        self.thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> "BackgroundWorker":
        self.thread.start()
        return self

    def _run(self):
        try:
            asyncio.run(self.factory())
        except Exception as e:
            self.error = e
            logger.error("background_worker_failed", worker=self.name, error=str(e), exc_info=True)
        else:
            logger.debug("background_worker_finished", worker=self.name)

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Waits for the worker to finish.

        :return: True if the worker has finished.
        """
        self.thread.join(timeout)
        return not self.thread.is_alive()

    def is_alive(self) -> bool:
        return self.thread.is_alive()
