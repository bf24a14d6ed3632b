import asyncio

import pytest

from tdock.MANAGERS.container import DockerContainer
from tdock.MODELS.image import GenericImage
from tdock.PARSERS.image_file import ImageFileParser


def test_command_injection_attempt(fake_engine, tmp_path):
    """
    Test that image values reach the engine as literal arguments.
    The engine is executed without a shell, so ';' and '$(...)' are plain text.
    """
    injected_file = tmp_path / "injected.txt"
    image = (
        GenericImage.new("redis")
        .with_env_var("PAYLOAD", f"x; touch {injected_file}")
        .with_args(["$(touch " + str(injected_file) + ")", "&&", "touch", str(injected_file)])
    )

    container = asyncio.run(DockerContainer.create(
        image, runner=fake_engine.runner(), settings=fake_engine.settings()
    ))
    asyncio.run(container.close())

    assert not injected_file.exists(), "Command injection successful! Security vulnerability found."
    run_call = fake_engine.calls()[0]
    assert f"PAYLOAD=x; touch {injected_file}" in run_call
    assert run_call[-4:] == ["$(touch " + str(injected_file) + ")", "&&", "touch", str(injected_file)]


def test_container_id_is_passed_verbatim(fake_engine):
    """
    Test that an id reported by the engine is never interpreted by a shell.
    """
    fake_engine.set_id("abc;touch /tmp/tdock-injected")
    container = asyncio.run(DockerContainer.create(
        GenericImage.new("redis"), runner=fake_engine.runner(), settings=fake_engine.settings()
    ))
    asyncio.run(container.close())
    assert fake_engine.calls()[-1] == ["rm", "-f", "-v", "abc;touch /tmp/tdock-injected"]


def test_image_file_does_not_execute_yaml_tags():
    """
    Test that image files are loaded with the safe YAML loader.
    """
    content = "descriptor: !!python/object/apply:os.system ['echo pwned']\n"
    with pytest.raises(ValueError):
        ImageFileParser(context={}).parse_from_string(content)


def test_missing_image_file():
    with pytest.raises(FileNotFoundError):
        ImageFileParser(context={}).parse("non_existent_file_12345.yml")
