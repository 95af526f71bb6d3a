"""Environment variable interpolation for config values."""

import os
import re
from typing import Mapping, Optional

_ENV_REFERENCE = re.compile(r"^\$\{([^}]*)\}$")


def interpolate_env(value: str, environ: Optional[Mapping[str, str]] = None) -> str:
    """
    Replace a value of the form ``${NAME}`` with the environment variable NAME.

    Only whole-value references are substituted; anything else is returned
    unchanged. A missing variable yields an empty string.
    """
    if environ is None:
        environ = os.environ
    match = _ENV_REFERENCE.match(value)
    if match is None:
        return value
    return environ.get(match.group(1), "")
