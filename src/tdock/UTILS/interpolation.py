"""
Expansion of ${VAR} references in image files.
"""
import re
from typing import Mapping

_REFERENCE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::([-+])([^}]*))?\}")


def expand_variables(text: str, environ: Mapping[str, str]) -> str:
    """
    Replaces ``${VAR}``, ``${VAR:-default}`` and ``${VAR:+alternative}``
    references with values from ``environ``.

    :param text: Text containing references.
    :param environ: Variables available for expansion.
    :return: The expanded text.
    :raises KeyError: If a plain ``${VAR}`` reference is not defined.
    """
    def substitute(match: "re.Match[str]") -> str:
        name, modifier, alternative = match.group(1), match.group(2), match.group(3)
        value = environ.get(name)
        if modifier == "-":
            return value if value else alternative
        if modifier == "+":
            return alternative if value else ""
        if value is None:
            raise KeyError(f"Variable {name} is not defined")
        return value

    return _REFERENCE.sub(substitute, text)
