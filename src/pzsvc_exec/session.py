"""Per-request session values and the logging helpers that use them."""

import logging
from collections.abc import MutableMapping
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger("pzsvc_exec.pipeline")
audit_logger = logging.getLogger("pzsvc_exec.audit")

DEFAULT_APP_NAME = "pzsvc-exec"
UNINITIALIZED_SESSION = "FailedOnInit"
ANONYMOUS_USER = "anon user"


class SessionLogAdapter(logging.LoggerAdapter):
    """Prefix every record with `[app:session]`."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        extra = self.extra or {}
        return f"[{extra.get('app')}:{extra.get('session')}] {msg}", kwargs


@dataclass(frozen=True)
class Session:
    """Identity and platform coordinates of one pipeline run."""

    app_name: str = DEFAULT_APP_NAME
    session_id: str = UNINITIALIZED_SESSION
    user_id: str = ANONYMOUS_USER
    pz_addr: str = ""
    pz_auth: str = ""
    log_audit: bool = False

    @property
    def log(self) -> SessionLogAdapter:
        return SessionLogAdapter(logger, {"app": self.app_name, "session": self.session_id})

    def audit(self, actor: str, action: str, actee: str) -> None:
        """Emit an audit record when audit logging is enabled."""
        if not self.log_audit:
            return
        audit_logger.info("[%s:%s] %s: %s: %s", self.app_name, self.session_id, actor, action, actee)
