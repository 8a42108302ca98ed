"""Tool configuration dataclasses and YAML loading."""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError

AUTO_PASSWORD = "auto"

# camelCase keys of the YAML format mapped to dataclass field names
_KEY_ALIASES = {
    "keysize": "key_size",
    "keySize": "key_size",
    "validityDays": "validity_days",
    "pkPassword": "pk_password",
    "signatureAlgorithm": "signature_algorithm",
    "httpEnabled": "http_enabled",
    "httpsEnabled": "http_enabled",
    "reuseTransportCertificatesForHttp": "reuse_transport_certificates_for_http",
    "verifyHostnames": "verify_hostnames",
    "resolveHostnames": "resolve_hostnames",
    "nodesDn": "nodes_dn",
    "nodeOid": "node_oid",
    "generatedPasswordLength": "generated_password_length",
}


def _normalize(section: str, data: Any, cls: type) -> dict[str, Any]:
    """Map YAML keys onto the fields of cls, rejecting unknown keys."""
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"section '{section}' must be a mapping")

    known = {f.name for f in fields(cls)}
    result: dict[str, Any] = {}
    for key, value in data.items():
        name = _KEY_ALIASES.get(key, key)
        if name not in known:
            raise ConfigurationError(f"unknown key '{key}' in section '{section}'")
        result[name] = value
    return result


def _as_list(section: str, key: str, value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ConfigurationError(f"'{key}' in section '{section}' must be a list")
    return [str(item) for item in value]


@dataclass
class CaCertificateConfig:
    """Root or intermediate CA: files to load, or parameters to create it."""

    file: str | None = None
    dn: str | None = None
    key_size: int | None = None
    validity_days: int | None = None
    pk_password: str | None = None

    @classmethod
    def from_dict(cls, section: str, data: Any) -> "CaCertificateConfig | None":
        if data is None:
            return None
        return cls(**_normalize(section, data, cls))


@dataclass
class CaConfig:
    root: CaCertificateConfig | None = None
    intermediate: CaCertificateConfig | None = None


@dataclass
class Defaults:
    """Global defaults; per-entity settings fall back to these."""

    validity_days: int = 730
    pk_password: str | None = None
    key_size: int = 2048
    signature_algorithm: str = "SHA256withRSA"
    http_enabled: bool = True
    reuse_transport_certificates_for_http: bool = False
    verify_hostnames: bool = False
    resolve_hostnames: bool = False
    nodes_dn: list[str] = field(default_factory=list)
    node_oid: str | None = None
    generated_password_length: int = 20


@dataclass
class NodeConfig:
    name: str | None = None
    dn: str | None = None
    dns: list[str] = field(default_factory=list)
    ip: list[str] = field(default_factory=list)
    oid: str | None = None
    key_size: int | None = None
    validity_days: int | None = None
    pk_password: str | None = None

    @property
    def addresses(self) -> list[str]:
        """Hostnames followed by IP literals, in configured order."""
        return [*self.dns, *self.ip]


@dataclass
class ClientConfig:
    name: str | None = None
    dn: str | None = None
    admin: bool = False
    key_size: int | None = None
    validity_days: int | None = None
    pk_password: str | None = None


@dataclass
class ToolConfig:
    """Complete, validated tool configuration."""

    ca: CaConfig = field(default_factory=CaConfig)
    defaults: Defaults = field(default_factory=Defaults)
    nodes: list[NodeConfig] = field(default_factory=list)
    clients: list[ClientConfig] = field(default_factory=list)

    def effective_key_size(self, entity: NodeConfig | ClientConfig | CaCertificateConfig) -> int:
        return entity.key_size or self.defaults.key_size

    def effective_validity_days(
        self, entity: NodeConfig | ClientConfig | CaCertificateConfig
    ) -> int:
        return entity.validity_days or self.defaults.validity_days

    def effective_pk_password(
        self, entity: NodeConfig | ClientConfig | CaCertificateConfig
    ) -> str | None:
        if entity.pk_password is not None:
            return entity.pk_password
        return self.defaults.pk_password

    def effective_oid(self, node: NodeConfig) -> str | None:
        return node.oid or self.defaults.node_oid

    @classmethod
    def from_dict(cls, data: Any) -> "ToolConfig":
        """Build configuration from a parsed YAML document.

        Raises:
            ConfigurationError: If a section has the wrong shape or an unknown key
        """
        if not isinstance(data, dict):
            raise ConfigurationError("configuration must be a mapping")

        unknown = set(data) - {"ca", "defaults", "nodes", "clients"}
        if unknown:
            raise ConfigurationError(f"unknown configuration sections: {sorted(unknown)}")

        ca_data = data.get("ca") or {}
        if not isinstance(ca_data, dict):
            raise ConfigurationError("section 'ca' must be a mapping")
        ca = CaConfig(
            root=CaCertificateConfig.from_dict("ca.root", ca_data.get("root")),
            intermediate=CaCertificateConfig.from_dict(
                "ca.intermediate", ca_data.get("intermediate")
            ),
        )

        defaults_values = _normalize("defaults", data.get("defaults"), Defaults)
        if "nodes_dn" in defaults_values:
            defaults_values["nodes_dn"] = _as_list(
                "defaults", "nodesDn", defaults_values["nodes_dn"]
            )
        defaults = Defaults(**defaults_values)

        nodes = []
        for index, node_data in enumerate(data.get("nodes") or []):
            values = _normalize(f"nodes[{index}]", node_data, NodeConfig)
            for key in ("dns", "ip"):
                values[key] = _as_list(f"nodes[{index}]", key, values.get(key))
            nodes.append(NodeConfig(**values))

        clients = [
            ClientConfig(**_normalize(f"clients[{index}]", client_data, ClientConfig))
            for index, client_data in enumerate(data.get("clients") or [])
        ]

        return cls(ca=ca, defaults=defaults, nodes=nodes, clients=clients)


def load_tool_config(path: Path) -> ToolConfig:
    """Load and validate a YAML configuration file."""
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"configuration file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid YAML in {path}: {e}") from e

    return ToolConfig.from_dict(data)
