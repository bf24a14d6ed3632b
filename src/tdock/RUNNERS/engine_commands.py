"""
Argument lists for the engine verbs.
"""
from typing import Dict, List

from ..MODELS.image import GenericImage


def format_mount(mount: Dict[str, str]) -> str:
    """
    Joins mount options into the engine's ``key=value,key=value`` form,
    keeping their order.
    """
    return ",".join(f"{key}={value}" for key, value in mount.items())


def run_args(image: GenericImage) -> List[str]:
    """
    Arguments for ``run``. Containers are always detached and publish all
    exposed ports to ephemeral host ports.
    """
    args: List[str] = []
    for key, value in image.env_vars.items():
        args += ["-e", f"{key}={value}"]
    for mount in image.mounts:
        args += ["--mount", format_mount(mount)]
    if image.network:
        args += ["--network", image.network]
    args += ["-d", "-P", image.descriptor]
    args += image.args
    return args


def logs_args(container_id: str) -> List[str]:
    return ["-f", container_id]


def inspect_args(container_id: str) -> List[str]:
    return [container_id]


def rm_args(container_id: str) -> List[str]:
    # -v also removes anonymous volumes
    return ["-f", "-v", container_id]


def stop_args(container_id: str) -> List[str]:
    return [container_id]
