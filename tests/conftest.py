import json
import os
import shlex
import sys

import pytest

from tdock.MODELS.settings import EngineSettings
from tdock.RUNNERS.process_runner import EngineRunner

FAKE_ENGINE = os.path.join(os.path.dirname(os.path.abspath(__file__)), "fake_engine.py")


class FakeEngine:
    """
    Handle on the fake docker CLI for one test.
    """

    def __init__(self, record_path, monkeypatch):
        self.record_path = record_path
        self.monkeypatch = monkeypatch
        self.command = [sys.executable, FAKE_ENGINE]

    def calls(self):
        if not self.record_path.exists():
            return []
        return [json.loads(line) for line in self.record_path.read_text().splitlines() if line]

    def verbs(self):
        return [call[0] for call in self.calls()]

    def runner(self, terminate_timeout=2.0):
        return EngineRunner(self.command, terminate_timeout=terminate_timeout)

    def settings(self, **overrides):
        values = {"engine": shlex.join(self.command), "log_grace_period": 0.0, "terminate_timeout": 2.0}
        values.update(overrides)
        return EngineSettings(**values)

    def set_id(self, container_id):
        self.monkeypatch.setenv("FAKE_ENGINE_ID", container_id)

    def set_logs(self, stdout=(), stderr=(), hang=False, delay=None):
        self.monkeypatch.setenv("FAKE_ENGINE_STDOUT", "\n".join(stdout))
        self.monkeypatch.setenv("FAKE_ENGINE_STDERR", "\n".join(stderr))
        if hang:
            self.monkeypatch.setenv("FAKE_ENGINE_LOGS_HANG", "1")
        if delay is not None:
            self.monkeypatch.setenv("FAKE_ENGINE_LINE_DELAY", str(delay))

    def set_inspect(self, payload):
        if not isinstance(payload, str):
            payload = json.dumps(payload)
        self.monkeypatch.setenv("FAKE_ENGINE_INSPECT", payload)

    def set_ports(self, container_id, ports):
        """Serves an inspect response for ports like {"5432/tcp": ["49155"], "5433/tcp": None}."""
        bindings = {}
        for key, host_ports in ports.items():
            if host_ports is None:
                bindings[key] = None
            else:
                bindings[key] = [{"HostIp": "0.0.0.0", "HostPort": p} for p in host_ports]
        self.set_inspect([{"Id": container_id, "NetworkSettings": {"Ports": bindings}}])

    def fail_run(self, message="Unable to find image"):
        self.monkeypatch.setenv("FAKE_ENGINE_RUN_ERROR", message)

    def fail_teardown(self, message="No such container"):
        self.monkeypatch.setenv("FAKE_ENGINE_TEARDOWN_ERROR", message)


@pytest.fixture
def fake_engine(tmp_path, monkeypatch):
    """A fake docker CLI recording its invocations."""
    for name in list(os.environ):
        if name.startswith("FAKE_ENGINE_"):
            monkeypatch.delenv(name)
    monkeypatch.delenv("KEEP_CONTAINERS", raising=False)
    record = tmp_path / "engine_calls.jsonl"
    monkeypatch.setenv("FAKE_ENGINE_RECORD", str(record))
    return FakeEngine(record, monkeypatch)

