"""Idempotent registration of this service in the platform catalog."""

import logging
from typing import Any

from pzsvc_exec.config import RuntimeContext
from pzsvc_exec.errors import TransferError
from pzsvc_exec.execution.ingest import CLASSIFICATION_PLACEHOLDER

LOGGER = logging.getLogger(__name__)


def service_descriptor(context: RuntimeContext) -> dict[str, Any]:
    """Catalog entry describing this service."""
    config = context.config
    execute_url = f"{config.url}/execute"
    return {
        "url": execute_url,
        "contractUrl": execute_url,
        "method": "POST",
        "timeout": config.max_run_time,
        "isTaskManaged": config.reg_for_task_mgr,
        "resourceMetadata": {
            "name": config.svc_name,
            "description": config.description,
            "classType": {"classification": CLASSIFICATION_PLACEHOLDER},
            "version": context.version,
            "metadata": dict(config.attributes),
        },
    }


def manage_registration(context: RuntimeContext) -> str | None:
    """Register the service, or update it when already present.

    Returns the service id when known. Failures are logged and swallowed so a
    catalog outage never keeps the service from starting.
    """
    if not context.can_register:
        LOGGER.info("Registration not possible with this configuration; skipping.")
        return None

    descriptor = service_descriptor(context)
    name = context.config.svc_name
    try:
        with context.platform_client(context.pz_addr, context.auth_key) as client:
            LOGGER.info("Searching for service %s in the platform service list", name)
            service_id = client.find_service(name)
            if service_id:
                LOGGER.info("Updating service registration %s", service_id)
                client.update_service(service_id, descriptor)
                return service_id

            LOGGER.info("Registering service %s", name)
            response = client.register_service(descriptor)
    except TransferError as exc:
        LOGGER.error("pzsvc-exec error in managing registration: %s", exc)
        return None

    data = response.get("data") if isinstance(response.get("data"), dict) else response
    return str(data.get("serviceId", "")) or None
