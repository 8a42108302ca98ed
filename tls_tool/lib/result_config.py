"""Per-node result configuration and elasticsearch.yml snippet rendering."""

from dataclasses import dataclass
from pathlib import Path

import yaml

from .dn import compile_dn_pattern, dn_matches_pattern

TRUSTED_CA_PLACEHOLDER = "<add path to trusted ca>"


@dataclass
class NodeResultConfig:
    """File references and passwords produced for one node."""

    node: str
    dn: str
    snippet_path: Path
    transport_pemcert_filepath: str | None = None
    transport_pemkey_filepath: str | None = None
    transport_pemkey_password: str | None = None
    transport_pemtrustedcas_filepath: str | None = None
    https_enabled: bool = True
    http_pemcert_filepath: str | None = None
    http_pemkey_filepath: str | None = None
    http_pemkey_password: str | None = None
    http_pemtrustedcas_filepath: str | None = None

    def reuse_transport_for_http(self) -> None:
        """Point the HTTP settings at the transport certificate material."""
        self.http_pemcert_filepath = self.transport_pemcert_filepath
        self.http_pemkey_filepath = self.transport_pemkey_filepath
        self.http_pemkey_password = self.transport_pemkey_password
        self.http_pemtrustedcas_filepath = self.transport_pemtrustedcas_filepath


class ResultConfigAccumulator:
    """Collects node results; the snapshot is available only after complete()."""

    def __init__(self) -> None:
        self._entries: list[NodeResultConfig] = []
        self._admin_dns: list[str] = []
        self._completed = False

    def add(self, entry: NodeResultConfig) -> None:
        if self._completed:
            raise RuntimeError("result configuration already completed")
        self._entries.append(entry)

    def add_admin_dn(self, dn: str) -> None:
        if self._completed:
            raise RuntimeError("result configuration already completed")
        self._admin_dns.append(dn)

    def complete(self) -> None:
        self._completed = True

    def _require_completed(self) -> None:
        if not self._completed:
            raise RuntimeError("result configuration is incomplete until all entities are done")

    @property
    def entries(self) -> tuple[NodeResultConfig, ...]:
        self._require_completed()
        return tuple(self._entries)

    @property
    def admin_dns(self) -> tuple[str, ...]:
        self._require_completed()
        return tuple(self._admin_dns)


def collect_nodes_dn(patterns: list[str], node_dns: list[tuple[str, str]]) -> list[str]:
    """Configured nodes_dn patterns followed by every node DN no pattern covers.

    Args:
        patterns: Glob or /regex/ patterns from the defaults
        node_dns: (node name, DN) pairs in processing order

    Raises:
        ConfigurationError: If a regex pattern is malformed
    """
    # Every pattern is checked, also those a DN would never reach
    for pattern in patterns:
        compile_dn_pattern(pattern, "nodes_dn")

    result = list(patterns)
    for node, dn in node_dns:
        if dn in result:
            continue
        if not any(dn_matches_pattern(pattern, dn, node) for pattern in patterns):
            result.append(dn)
    return result


def _snippet_header(entry: NodeResultConfig, csr_mode: bool) -> str:
    lines = [f"# This is a configuration snippet for the node {entry.node}"]
    if csr_mode:
        lines += [
            "# The certificate paths below are placeholders. Submit the generated signing",
            "# requests (.csr files) to your PKI to obtain the actual certificates, then",
            "# adjust the paths to match them.",
        ]
    lines += [
        "# Copy the certificates and private keys (.key files) into the config directory",
        "# of the node and insert this snippet into its elasticsearch.yml, replacing any",
        "# existing Search Guard TLS settings.",
    ]
    return "\n".join(lines) + "\n\n"


def render_config_snippet(
    entry: NodeResultConfig,
    nodes_dn: list[str],
    admin_dn: list[str],
    verify_hostnames: bool = False,
    resolve_hostnames: bool = False,
    csr_mode: bool = False,
) -> str:
    """Render the node's elasticsearch.yml snippet as YAML."""
    settings: dict[str, object] = {
        "searchguard.ssl.transport.pemcert_filepath": entry.transport_pemcert_filepath,
        "searchguard.ssl.transport.pemkey_filepath": entry.transport_pemkey_filepath,
    }
    if entry.transport_pemkey_password:
        settings["searchguard.ssl.transport.pemkey_password"] = entry.transport_pemkey_password
    settings["searchguard.ssl.transport.pemtrustedcas_filepath"] = (
        entry.transport_pemtrustedcas_filepath
    )
    settings["searchguard.ssl.transport.enforce_hostname_verification"] = verify_hostnames
    settings["searchguard.ssl.transport.resolve_hostname"] = resolve_hostnames

    settings["searchguard.ssl.http.enabled"] = entry.https_enabled
    if entry.https_enabled:
        settings["searchguard.ssl.http.pemcert_filepath"] = entry.http_pemcert_filepath
        settings["searchguard.ssl.http.pemkey_filepath"] = entry.http_pemkey_filepath
        if entry.http_pemkey_password:
            settings["searchguard.ssl.http.pemkey_password"] = entry.http_pemkey_password
        settings["searchguard.ssl.http.pemtrustedcas_filepath"] = entry.http_pemtrustedcas_filepath

    settings["searchguard.nodes_dn"] = list(nodes_dn)
    settings["searchguard.authcz.admin_dn"] = list(admin_dn)

    body = yaml.safe_dump(settings, sort_keys=False, default_flow_style=False, width=1000)
    return _snippet_header(entry, csr_mode) + body
