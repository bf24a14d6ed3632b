import pytest

from tdock.MODELS.image import LogStream, WaitForLogMessage, WaitForNothing
from tdock.PARSERS.image_file import ImageFileParser
from tdock.UTILS.interpolation import expand_variables


def test_parse_from_string():
    content = """
    descriptor: postgres:11-alpine
    env:
      POSTGRES_DB: db
      POSTGRES_PASSWORD: ${PGPASSWORD:-pass}
    args: ["-c", "fsync=off"]
    mounts:
      - {type: bind, source: /tmp/data, target: /data}
      - type=volume,source=pgdata,target=/var/lib/postgresql/data
    network: test-net
    wait_for:
      message: database system is ready to accept connections
      stream: stderr
      timeout: 20
    """
    image = ImageFileParser(context={}).parse_from_string(content)
    assert image.descriptor == "postgres:11-alpine"
    assert image.env_vars == {"POSTGRES_DB": "db", "POSTGRES_PASSWORD": "pass"}
    assert image.args == ["-c", "fsync=off"]
    assert image.mounts[0] == {"type": "bind", "source": "/tmp/data", "target": "/data"}
    assert image.mounts[1]["source"] == "pgdata"
    assert image.network == "test-net"
    assert isinstance(image.wait_for, WaitForLogMessage)
    assert image.wait_for.stream is LogStream.STDERR
    assert image.wait_for.timeout == 20


def test_minimal_file(tmp_path):
    path = tmp_path / "redis.yml"
    path.write_text("descriptor: redis:7\n")
    image = ImageFileParser(context={}).parse(str(path))
    assert image.descriptor == "redis:7"
    assert isinstance(image.wait_for, WaitForNothing)


def test_missing_descriptor():
    with pytest.raises(ValueError):
        ImageFileParser(context={}).parse_from_string("env: {A: b}\n")


def test_not_a_mapping():
    with pytest.raises(ValueError):
        ImageFileParser(context={}).parse_from_string("- just\n- a list\n")


def test_expand_variables():
    env = {"USER": "alice", "EMPTY": ""}
    assert expand_variables("${USER}", env) == "alice"
    assert expand_variables("${EMPTY:-fallback}", env) == "fallback"
    assert expand_variables("${USER:+set}", env) == "set"
    assert expand_variables("${MISSING:+set}", env) == ""
    with pytest.raises(KeyError):
        expand_variables("${MISSING}", env)


def test_undefined_variable_is_a_format_error():
    with pytest.raises(ValueError, match="UNDEFINED_IMAGE"):
        ImageFileParser(context={}).parse_from_string("descriptor: ${UNDEFINED_IMAGE}\n")
