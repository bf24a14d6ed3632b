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
Parser for YAML image files.

An image file describes one container::

    descriptor: postgres:11-alpine
    env:
      POSTGRES_DB: db
      POSTGRES_PASSWORD: ${PGPASSWORD:-pass}
    args: ["-c", "fsync=off"]
    mounts:
      - {type: bind, source: /tmp/data, target: /data}
    network: test-net
    wait_for:
      message: database system is ready to accept connections
      stream: stderr
      timeout: 20
"""
import os
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import ValidationError

from ..MODELS.image import GenericImage, LogStream, WaitFor, WaitForNothing
from ..UTILS.interpolation import expand_variables


class ImageFileParser:
    """
    Parser for image files.
    """
    def __init__(self, context: Optional[Mapping[str, str]] = None):
        """
        :param context: Variables available for ${VAR} expansion. Defaults to
            the process environment.
        """
        self.context = dict(os.environ) if context is None else dict(context)

    def parse(self, path: str) -> GenericImage:
        """
        Parses an image file from a path.

        :param path: Path to the YAML file.
        :return: The described image.
        """
        with open(path, 'r') as f:
            content = f.read()
        return self.parse_from_string(content)

    def parse_from_string(self, content: str) -> GenericImage:
        """
        Parses an image file from a string.

        :param content: YAML content.
        :return: The described image.
        :raises ValueError: If the content does not describe a valid image.
        """
        try:
            content = expand_variables(content, self.context)
        except KeyError as e:
            raise ValueError(f"Image file references an undefined variable: {e.args[0]}") from e
        try:
            data = yaml.safe_load(content) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Image file is not valid YAML: {e}") from e
        if not isinstance(data, dict):
            raise ValueError("Image file must contain a mapping")

        env = data.get('env') or {}
        if not isinstance(env, dict):
            raise ValueError("'env' must be a mapping")
        try:
            return GenericImage(
                descriptor=data.get('descriptor', ''),
                env_vars={str(k): str(v) for k, v in env.items()},
                args=self._to_list(data.get('args')),
                mounts=[self._parse_mount(m) for m in data.get('mounts') or []],
                network=data.get('network'),
                wait_for=self._parse_wait_for(data.get('wait_for')),
            )
        except (ValidationError, TypeError) as e:
            raise ValueError(f"Invalid image file: {e}") from e

    def _parse_mount(self, mount: Any) -> Dict[str, str]:
        """
        Accepts either a mapping or the engine's ``key=value,key=value`` form.
        """
        if isinstance(mount, dict):
            return {str(k): str(v) for k, v in mount.items()}
        parsed = {}
        for option in str(mount).split(','):
            key, _, value = option.partition('=')
            parsed[key.strip()] = value.strip()
        return parsed

    def _parse_wait_for(self, wait_for: Any):
        if not wait_for:
            return WaitForNothing()
        if not isinstance(wait_for, dict):
            raise ValueError("'wait_for' must be a mapping")
        stream = LogStream(wait_for.get('stream', 'stdout'))
        timeout = float(wait_for.get('timeout', 60))
        if stream is LogStream.STDERR:
            return WaitFor.message_on_stderr(wait_for.get('message', ''), timeout)
        return WaitFor.message_on_stdout(wait_for.get('message', ''), timeout)

    def _to_list(self, val: Any) -> List[str]:
        if val is None:
            return []
        if isinstance(val, str):
            return [val]
        return [str(v) for v in val]


def load_image(path: str) -> GenericImage:
    """Parses the image file at ``path`` using the process environment."""
    return ImageFileParser().parse(path)
