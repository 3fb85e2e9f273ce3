"""Session id derivation for interaction requests.

A session id correlates repeated requests from the same working context so
that they keep landing on the same channel. When the caller does not pass
one explicitly it is derived, in order, from:

1. the request's ``working_directory`` (``path`` or ``path:branch``),
2. the ``CHATRELAY_SESSION_ID`` environment variable,
3. the ``PWD`` environment variable,
4. the process's current directory,
5. a generated ``session_<unix-seconds>_pid_<pid>`` fallback.
"""

from __future__ import annotations

import os
import time
from collections.abc import Mapping

SESSION_ID_ENV = "CHATRELAY_SESSION_ID"
GENERATED_PREFIX = "session_"


def _normalise(value: str) -> str:
    stripped = value.strip()
    if len(stripped) > 1:
        stripped = stripped.rstrip("/")
    return stripped


def generate_session_id() -> str:
    """Build a unique fallback id from the clock and the process id."""
    return f"{GENERATED_PREFIX}{int(time.time())}_pid_{os.getpid()}"


def resolve_session_id(
    working_directory: str | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    cwd: str | None = None,
) -> str:
    """Derive a session id for a request.

    Args:
        working_directory: Optional directory (or ``path:branch``) from the request.
        environ: Environment to read; defaults to ``os.environ``.
        cwd: Current directory override; defaults to ``os.getcwd()``.

    Returns:
        A non-empty session id without a trailing slash.
    """
    env = os.environ if environ is None else environ
    candidates = [working_directory, env.get(SESSION_ID_ENV), env.get("PWD")]
    for candidate in candidates:
        if candidate and candidate.strip():
            return _normalise(candidate)

    if cwd is None:
        try:
            cwd = os.getcwd()
        except OSError:
            cwd = None
    if cwd:
        return _normalise(cwd)
    return generate_session_id()


def is_generated_session_id(session_id: str) -> bool:
    return session_id.startswith(GENERATED_PREFIX) and "_pid_" in session_id
