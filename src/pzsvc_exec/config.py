"""Typed service configuration and the runtime context derived from it."""

from __future__ import annotations

import base64
import logging
import os
import subprocess
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from pzsvc_exec.execution.gate import ConcurrencyGate
from pzsvc_exec.platform.client import PlatformClient
from pzsvc_exec.session import DEFAULT_APP_NAME

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "PZSVC_EXEC_CONFIG"
DEFAULT_PORT = 8080

ClientFactory = Callable[[str, str], PlatformClient]


class ServiceConfig(BaseModel):
    """Every recognised configuration option, keyed as in the config file."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    cli_cmd: str = Field(default="", alias="CliCmd", description="Command prefix; blank is a security risk")
    version_cmd: str = Field(default="", alias="VersionCmd", description="Command printing the CLI version")
    version_str: str = Field(default="", alias="VersionStr", description="Static CLI version")
    pz_addr: str = Field(default="", alias="PzAddr", description="Platform base URL")
    pz_addr_env_var: str = Field(default="", alias="PzAddrEnVar", description="Env var overriding PzAddr")
    api_key_env_var: str = Field(default="", alias="APIKeyEnVar", description="Env var holding the platform API key")
    svc_name: str = Field(default="", alias="SvcName")
    url: str = Field(default="", alias="URL", description="Public URL of this service, for registration")
    port: int = Field(default=DEFAULT_PORT, alias="Port")
    port_env_var: str = Field(default="", alias="PortEnVar")
    description: str = Field(default="", alias="Description")
    attributes: dict[str, str] = Field(default_factory=dict, alias="Attributes")
    num_procs: int = Field(default=0, alias="NumProcs", description="Simultaneous executions; <= 0 is unbounded")
    can_upload: bool = Field(default=False, alias="CanUpload")
    can_download_pz: bool = Field(default=False, alias="CanDownlPz")
    can_download_ext: bool = Field(default=False, alias="CanDownlExt")
    reg_for_task_mgr: bool = Field(default=False, alias="RegForTaskMgr")
    max_run_time: int = Field(default=0, alias="MaxRunTime", description="Seconds before a command is killed")
    local_only: bool = Field(default=False, alias="LocalOnly")
    log_audit: bool = Field(default=False, alias="LogAudit")
    work_dir: str = Field(default="", alias="WorkDir", description="Install directory; workspaces live below it")

    @field_validator("pz_addr", "url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @field_validator("port")
    @classmethod
    def _default_port(cls, value: int) -> int:
        return value if value > 0 else DEFAULT_PORT

    @property
    def can_use_platform_files(self) -> bool:
        return self.can_upload or self.can_download_pz


def load_config(path: str | Path) -> ServiceConfig:
    """Load a JSON or YAML config file."""
    resolved = Path(path)
    with resolved.open("r", encoding="utf-8") as file_handle:
        try:
            payload = yaml.safe_load(file_handle) or {}
        except yaml.YAMLError as exc:
            raise RuntimeError(f"Config '{resolved}' is not valid JSON or YAML: {exc}") from exc
    if not isinstance(payload, dict):
        raise RuntimeError(f"Config '{resolved}' must be a mapping")
    return ServiceConfig.model_validate(payload)


def check_config(config: ServiceConfig) -> bool:
    """Log concerns about the configuration and return whether registration is possible."""
    can_register = True

    if not config.cli_cmd:
        logger.warning("Config: CliCmd is blank.  This is a major security vulnerability.")

    if not config.pz_addr and not config.pz_addr_env_var:
        logger.info("Config: PzAddr not specified.  Autoregistration disabled.")
        can_register = False
    elif not config.api_key_env_var:
        logger.info("Config: APIKeyEnVar not specified.  Autoregistration disabled.")
        can_register = False
    elif not config.svc_name:
        logger.info("Config: SvcName not specified.  Autoregistration disabled.")
        can_register = False
    elif not config.url and not config.reg_for_task_mgr:
        logger.info("Config: URL not specified for this service.  Autoregistration disabled.")
        can_register = False

    if not config.can_use_platform_files and not config.can_download_ext:
        logger.info("Config: file transfers are all disabled.  Only bare command execution is available.")
    if config.version_cmd and config.version_str:
        logger.info("Config: Both VersionCmd and VersionStr were specified.  Defaulting to VersionCmd.")
    elif not config.version_cmd and not config.version_str:
        logger.info("Config: neither VersionCmd nor VersionStr was specified.  Version will be left blank.")

    if can_register and not config.description:
        logger.info("Config: Description not specified.  Descriptions are strongly encouraged for registration.")
    if config.max_run_time <= 0:
        logger.info("Config: MaxRunTime not specified.  Commands will run without a time limit.")

    return can_register


def get_version(config: ServiceConfig) -> str:
    """Version of the wrapped CLI tool: VersionCmd output, else VersionStr."""
    args = config.version_cmd.split()
    if not args:
        return config.version_str
    try:
        completed = subprocess.run(args, capture_output=True, text=True, check=True)
    except (OSError, subprocess.CalledProcessError) as exc:
        logger.error("VersionCmd failed: %s", exc)
        return config.version_str
    return completed.stdout.strip()


def basic_auth_key(api_key: str) -> str:
    return "Basic " + base64.b64encode(f"{api_key}:".encode("utf-8")).decode("ascii")


@dataclass(frozen=True)
class RuntimeContext:
    """Immutable values shared by every pipeline run of this process."""

    config: ServiceConfig
    pz_addr: str = ""
    auth_key: str = ""
    version: str = ""
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    can_register: bool = False
    install_dir: Path = field(default_factory=Path.cwd)
    gate: ConcurrencyGate = field(default_factory=lambda: ConcurrencyGate(0))
    client_factory: ClientFactory = PlatformClient
    sleep: Callable[[float], None] = time.sleep

    @property
    def app_name(self) -> str:
        return self.config.svc_name or DEFAULT_APP_NAME

    def platform_client(self, pz_addr: str, auth: str) -> PlatformClient:
        return self.client_factory(pz_addr, auth)


def build_context(
    config: ServiceConfig,
    *,
    environ: Mapping[str, str] | None = None,
    **overrides: Any,
) -> RuntimeContext:
    """Resolve environment overrides, credentials and version into a RuntimeContext."""
    env = os.environ if environ is None else environ
    can_register = check_config(config)

    pz_addr = config.pz_addr
    if config.pz_addr_env_var:
        env_addr = env.get(config.pz_addr_env_var, "").strip().rstrip("/")
        if env_addr:
            pz_addr = env_addr
            logger.info("Config: PzAddr updated to %s based on PzAddrEnVar.", pz_addr)
        elif pz_addr:
            logger.info("Config: PzAddrEnVar specified, but no such env var exists.  Reverting to PzAddr.")
        else:
            logger.info("Config: PzAddrEnVar specified, but no such env var exists, and PzAddr not specified.")
            can_register = False

    auth_key = ""
    if config.api_key_env_var and (can_register or config.can_use_platform_files):
        api_key = env.get(config.api_key_env_var, "")
        if api_key:
            auth_key = basic_auth_key(api_key)
        else:
            logger.info("No api key at APIKeyEnVar.  Registration disabled; clients must provide pzAuthKey.")
            can_register = False

    port = config.port
    if config.port_env_var:
        raw_port = env.get(config.port_env_var, "").strip()
        try:
            env_port = int(raw_port)
        except ValueError:
            env_port = 0
        if env_port > 0:
            port = env_port
        else:
            logger.info("Config: Could not interpret PortEnVar.  Reverting to port %s", port)

    host = "0.0.0.0"
    if config.local_only:
        logger.info("Local Only specified.  Limiting incoming requests to localhost.")
        host = "localhost"

    values: dict[str, Any] = {
        "config": config,
        "pz_addr": pz_addr,
        "auth_key": auth_key,
        "version": get_version(config),
        "host": host,
        "port": port,
        "can_register": can_register,
        "install_dir": Path(config.work_dir).resolve() if config.work_dir else Path.cwd(),
        "gate": ConcurrencyGate(config.num_procs),
    }
    values.update(overrides)
    return RuntimeContext(**values)
