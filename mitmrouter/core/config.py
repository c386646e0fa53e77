import logging
import os
import re
from typing import Dict

import yaml
from pydantic import ValidationError

from .errors import ConfigError, ConfigInvalid
from .models import ApplianceConfig

log = logging.getLogger("mitmrouter.config")

# On-disk variable name for each ApplianceConfig field, in file order.
FIELD_KEYS: Dict[str, str] = {
    "bridge_iface": "BR_IFACE",
    "wan_iface": "WAN_IFACE",
    "lan_iface": "LAN_IFACE",
    "wifi_iface": "WIFI_IFACE",
    "wifi_ssid": "WIFI_SSID",
    "wifi_password": "WIFI_PASSWORD",
    "lan_ip": "LAN_IP",
    "lan_subnet": "LAN_SUBNET",
    "dhcp_start": "LAN_DHCP_START",
    "dhcp_end": "LAN_DHCP_END",
    "dns_server": "LAN_DNS_SERVER",
}
KEY_FIELDS = {v: k for k, v in FIELD_KEYS.items()}

_TRAILING_COMMENT = re.compile(r"\s+#.*$")


def ensure_dirs(path: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)


def _unquote(value: str, key: str, lineno: int) -> str:
    # Trailing "# ..." comments are allowed after the value, as in shell.
    if value.startswith('"'):
        end = value.find('"', 1)
        if end == -1:
            raise ConfigInvalid(f"line {lineno}: unbalanced quotes in {key}")
        rest = value[end + 1:].strip()
        if rest and not rest.startswith("#"):
            raise ConfigInvalid(f"line {lineno}: unexpected text after {key} value: {rest!r}")
        return value[1:end]

    value = _TRAILING_COMMENT.sub("", value)
    if '"' in value:
        raise ConfigInvalid(f"line {lineno}: unbalanced quotes in {key}")
    return value


def parse_config(text: str) -> ApplianceConfig:
    data = {}
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ConfigInvalid(f"line {lineno}: expected KEY=\"value\", got {raw!r}")
        value = _unquote(value.strip(), key, lineno)
        field = KEY_FIELDS.get(key)
        if field is None:
            log.warning("Ignoring unknown setting %s on line %d", key, lineno)
            continue
        data[field] = value
    return validate_config(data)


def validate_config(data: dict) -> ApplianceConfig:
    try:
        return ApplianceConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigInvalid(str(e)) from e


def render_config(cfg: ApplianceConfig) -> str:
    values = cfg.model_dump()
    return "".join(f'{key}="{values[field]}"\n' for field, key in FIELD_KEYS.items())


def load_config(path: str) -> ApplianceConfig:
    if not os.path.exists(path):
        log.info("== No config file at %s, using defaults", path)
        return ApplianceConfig()
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except UnicodeDecodeError as e:
        raise ConfigInvalid(f"{path} is not valid UTF-8: {e}") from e
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e}") from e
    return parse_config(text)


def save_config(cfg: ApplianceConfig, path: str) -> None:
    try:
        ensure_dirs(path)
        with open(path, "w", encoding="utf-8") as f:
            f.write(render_config(cfg))
    except OSError as e:
        raise ConfigError(f"cannot write {path}: {e}") from e
    log.info("== Saved configuration to %s", path)


def dump_yaml(cfg: ApplianceConfig) -> str:
    return yaml.safe_dump(cfg.model_dump(), sort_keys=False)
