"""Pseudo-UUID generation for session ids and workspace names."""

import secrets

from pzsvc_exec.errors import InternalError


def pseudo_uuid() -> str:
    """Return 16 random bytes as five hyphen-separated upper-case hex groups.

    Not an RFC 4122 UUID, but effectively unique for naming workspaces and
    correlating log lines.
    """
    try:
        raw = secrets.token_bytes(16)
    except OSError as exc:
        raise InternalError("Could not generate session id") from exc

    groups = (raw[0:4], raw[4:6], raw[6:8], raw[8:10], raw[10:])
    return "-".join(group.hex().upper() for group in groups)
