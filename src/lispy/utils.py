from __future__ import annotations

import os as _os
from typing import Optional

DEBUG_PY_TRACE_ENV = "LISPY_DEBUG_PY_TRACE"

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def envvar_value_by_name(name: str) -> Optional[str]:
    """Get the current value of an env var by name, or None if missing."""
    return _os.environ.get(name)


def env_flag(name: str) -> bool:
    value = envvar_value_by_name(name)
    return value is not None and value.strip().lower() in _TRUTHY


def debug_py_trace_enabled() -> bool:
    """Print Python tracebacks alongside lispy errors."""
    return env_flag(DEBUG_PY_TRACE_ENV)
