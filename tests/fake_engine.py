"""
Stand-in for the docker CLI used by the tests.

Behaviour is driven by environment variables:

FAKE_ENGINE_RECORD      file every invocation's argv is appended to (JSON lines)
FAKE_ENGINE_ID          id printed by ``run``
FAKE_ENGINE_RUN_ERROR   makes ``run`` fail with this message on stderr
FAKE_ENGINE_STDOUT      lines printed on stdout by ``logs``
FAKE_ENGINE_STDERR      lines printed on stderr by ``logs``
FAKE_ENGINE_LINE_DELAY  seconds to sleep between log lines
FAKE_ENGINE_LOGS_HANG   keep ``logs`` open after printing
FAKE_ENGINE_INSPECT     JSON printed by ``inspect``
FAKE_ENGINE_TEARDOWN_ERROR  makes ``rm`` and ``stop`` fail with this message
"""
import json
import os
import sys
import time

DEFAULT_ID = "3f2a9c0d1e7b5a4c"


def record(argv):
    path = os.environ.get("FAKE_ENGINE_RECORD")
    if path:
        with open(path, "a") as f:
            f.write(json.dumps(argv) + "\n")


def lines_of(name):
    value = os.environ.get(name, "")
    return value.split("\n") if value else []


def logs():
    delay = float(os.environ.get("FAKE_ENGINE_LINE_DELAY", "0"))
    for stream, name in ((sys.stdout, "FAKE_ENGINE_STDOUT"), (sys.stderr, "FAKE_ENGINE_STDERR")):
        for line in lines_of(name):
            stream.write(line + "\n")
            stream.flush()
            if delay:
                time.sleep(delay)
    if os.environ.get("FAKE_ENGINE_LOGS_HANG"):
        time.sleep(60)
    return 0


def main(argv):
    record(argv)
    verb = argv[0] if argv else ""

    if verb == "run":
        error = os.environ.get("FAKE_ENGINE_RUN_ERROR")
        if error:
            sys.stderr.write(error + "\n")
            return 125
        print(os.environ.get("FAKE_ENGINE_ID", DEFAULT_ID))
        return 0

    if verb == "logs":
        return logs()

    if verb == "inspect":
        default = [{"Id": argv[-1], "NetworkSettings": {"Ports": {}}}]
        print(os.environ.get("FAKE_ENGINE_INSPECT", json.dumps(default)))
        return 0

    if verb in ("rm", "stop"):
        error = os.environ.get("FAKE_ENGINE_TEARDOWN_ERROR")
        if error:
            sys.stderr.write(error + "\n")
            return 1
        print(argv[-1])
        return 0

    sys.stderr.write(f"unknown verb {verb!r}\n")
    return 2


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
