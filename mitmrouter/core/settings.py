import os
from typing import List, Literal, Mapping, Optional

from pydantic import BaseModel, Field

from .errors import ConfigInvalid
from .models import Redirect

SudoMode = Literal["auto", "always", "never"]
BridgeTool = Literal["brctl", "iproute2"]
LogFormat = Literal["text", "json"]

ENV_PREFIX = "MITMROUTER_"


def _flag(value: str) -> bool:
    return value.strip().lower() not in ("0", "false", "no", "off", "")


class RuntimeSettings(BaseModel):
    """Process-level knobs; everything the appliance config file does not hold."""

    config_path: str = "/etc/mitmrouter/mitmrouter.conf"
    workdir: str = "/var/lib/mitmrouter"
    sudo: SudoMode = "auto"
    command_timeout: float = Field(default=30.0, gt=0)
    rollback: bool = True
    bridge_tool: BridgeTool = "brctl"
    redirects: List[Redirect] = Field(default_factory=list)
    log_level: str = "INFO"
    log_format: LogFormat = "text"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RuntimeSettings":
        env = os.environ if environ is None else environ
        data = {}
        for key in ("config", "workdir", "sudo", "command_timeout", "bridge_tool", "log_level", "log_format"):
            raw = env.get(ENV_PREFIX + key.upper())
            if raw is None or raw == "":
                continue
            data["config_path" if key == "config" else key] = raw
        if ENV_PREFIX + "ROLLBACK" in env:
            data["rollback"] = _flag(env[ENV_PREFIX + "ROLLBACK"])

        redirects = env.get(ENV_PREFIX + "REDIRECTS", "")
        try:
            data["redirects"] = [Redirect.parse(r) for r in redirects.split(",") if r.strip()]
            return cls.model_validate(data)
        except ValueError as e:
            raise ConfigInvalid(f"invalid {ENV_PREFIX}* environment: {e}") from e

    @property
    def dnsmasq_conf(self) -> str:
        return os.path.join(self.workdir, "tmp_dnsmasq.conf")

    @property
    def hostapd_conf(self) -> str:
        return os.path.join(self.workdir, "tmp_hostapd.conf")
