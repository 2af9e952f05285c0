"""Environment variables as the lowest-precedence configuration source."""

import os
import re
from typing import Mapping

_ALIASABLE = re.compile(r"^[A-Z0-9]+(_[A-Z0-9]+)+$")


def environment_values(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """
    Snapshot of the process environment.

    Upper-case names with underscores also get a dotted lower-case alias
    (APP_SERVER_PORT -> app.server.port) so they can override-fill property-style keys.
    Real variable names come first, so an alias never shadows an actual variable.
    """
    env = dict(os.environ if environ is None else environ)
    values = dict(env)
    for name, value in env.items():
        if _ALIASABLE.match(name):
            values.setdefault(name.lower().replace("_", "."), value)
    return values
