"""Run orchestration: issue node and client certificates or CSRs and emit their files."""

from collections.abc import Callable
from functools import partial
from pathlib import Path

from .cert_utils import serialize_certificate_chain, serialize_csr
from .certificate_builder import CertificateBuilder
from .config import ClientConfig, NodeConfig, ToolConfig
from .dn import create_subject, entity_file_name
from .exceptions import ArtifactWriteError, ConfigurationError, TlsToolError
from .extension_policy import policy_for
from .logging_config import LOGGER
from .models import (
    BuildMode,
    CertificateArtifact,
    CertificateRole,
    EntityFailure,
    NodeState,
    OutputArtifact,
    RunSummary,
    SubjectSpec,
)
from .output import (
    CLIENT_README_HEADER,
    NODE_README_HEADER,
    OutputArtifactWriter,
    key_artifact,
    password_note,
    resolve_password,
)
from .result_config import (
    TRUSTED_CA_PLACEHOLDER,
    NodeResultConfig,
    ResultConfigAccumulator,
    collect_nodes_dn,
    render_config_snippet,
)
from .san import expand_subject_alt_names
from .signing_context import SigningContext

CLIENT_README_FILE = "client-certificates.readme"
NODE_README_FILE = "node-certificates.readme"
CONFIG_SNIPPET_SUFFIX = "_elasticsearch_config_snippet.yml"


class CertificateGenerator:
    """Generates all node and client artifacts of one run.

    Entities are processed sequentially. A failing entity is recorded in the
    run summary and processing continues with the next one.
    """

    def __init__(self, config: ToolConfig, context: SigningContext, mode: BuildMode) -> None:
        self.config = config
        self.context = context
        self.mode = mode
        self.writer = OutputArtifactWriter(context.target_directory)
        self.accumulator = ResultConfigAccumulator()
        self.summary = RunSummary()
        self.node_states: dict[str, NodeState] = {}

    @property
    def target_directory(self) -> Path:
        return self.context.target_directory

    @property
    def csr_mode(self) -> bool:
        return self.mode is BuildMode.SIGNING_REQUEST

    def run(self) -> RunSummary:
        """Process every configured node and client, then emit config snippets."""
        nodes_dn = self._resolve_nodes_dn()
        if nodes_dn is not None:
            for index, node in enumerate(self.config.nodes):
                name = self._node_name(node, index)
                self._guarded(name, partial(self.generate_node, node, name))

        for index, client in enumerate(self.config.clients):
            name = self._client_name(client, index)
            self._guarded(name, partial(self.generate_client, client, name))

        # Signing is over once every entity has been processed
        self.context.release()

        for dn in self._admin_dns():
            self.accumulator.add_admin_dn(dn)
        self.accumulator.complete()
        self._emit_config_snippets(nodes_dn or [])

        self._log_summary()
        return self.summary

    def _resolve_nodes_dn(self) -> list[str] | None:
        """Collect the nodes_dn list before anything is written.

        Every node fails when the patterns are unusable.
        """
        node_dns = self._configured_dns(
            self.config.nodes, CertificateRole.NODE_TRANSPORT, self._node_name
        )
        try:
            return collect_nodes_dn(self.config.defaults.nodes_dn, node_dns)
        except ConfigurationError as e:
            for index, node in enumerate(self.config.nodes):
                name = self._node_name(node, index)
                LOGGER.error("Generating artifacts for %s failed: %s", name, e)
                self.summary.failures.append(EntityFailure(entity=name, error=str(e)))
            return None

    def generate_node(self, node: NodeConfig, name: str) -> None:
        """Issue the transport and, if HTTP is enabled and not reused, the HTTP artifacts."""
        defaults = self.config.defaults
        self.node_states[name] = NodeState.NOT_STARTED

        key_path, cert_path = self._paths(name)
        http_key_path, http_cert_path = self._paths(f"{name}_http")
        issue_http = defaults.http_enabled and not defaults.reuse_transport_certificates_for_http

        group = [key_path, cert_path]
        if issue_http:
            group += [http_key_path, http_cert_path]
        if not self.writer.check_group(name, group):
            self.summary.skipped.append(name)
            return

        spec = self._subject_spec(node, name)
        password, auto_generated = resolve_password(
            self.config.effective_pk_password(node), defaults.generated_password_length
        )

        transport = self._issue(spec, CertificateRole.NODE_TRANSPORT)
        self.node_states[name] = NodeState.TRANSPORT_ISSUED
        artifacts = [key_artifact(key_path, transport.private_key, password)]
        artifacts.append(self._certificate_artifact(cert_path, transport))

        entry = NodeResultConfig(
            node=name,
            dn=self._subject_dn(transport),
            snippet_path=self.target_directory / f"{name}{CONFIG_SNIPPET_SUFFIX}",
            transport_pemcert_filepath=self._cert_reference(cert_path, "transport", name),
            transport_pemkey_filepath=str(key_path),
            transport_pemkey_password=password,
            transport_pemtrustedcas_filepath=self._trusted_cas_reference(),
        )

        if not defaults.http_enabled:
            entry.https_enabled = False
            state = NodeState.HTTP_SKIPPED_DISABLED
        elif defaults.reuse_transport_certificates_for_http:
            entry.reuse_transport_for_http()
            state = NodeState.HTTP_REUSED
        else:
            http = self._issue(spec, CertificateRole.NODE_HTTP)
            artifacts.append(key_artifact(http_key_path, http.private_key, password))
            artifacts.append(self._certificate_artifact(http_cert_path, http))
            entry.http_pemcert_filepath = self._cert_reference(http_cert_path, "HTTP", name)
            entry.http_pemkey_filepath = str(http_key_path)
            entry.http_pemkey_password = password
            entry.http_pemtrustedcas_filepath = self._trusted_cas_reference()
            state = NodeState.HTTP_ISSUED

        if not self.writer.try_write_group(name, artifacts):
            self.summary.skipped.append(name)
            return
        if auto_generated:
            self._disclose_passwords(NODE_README_FILE, NODE_README_HEADER, artifacts)
        self.node_states[name] = state

        self._count(len(artifacts) // 2)
        self.accumulator.add(entry)
        self.summary.completed.append(name)

    def generate_client(self, client: ClientConfig, name: str) -> None:
        """Issue the certificate or CSR of an API client."""
        key_path, cert_path = self._paths(name)
        if not self.writer.check_group(name, [key_path, cert_path]):
            self.summary.skipped.append(name)
            return

        password, auto_generated = resolve_password(
            self.config.effective_pk_password(client),
            self.config.defaults.generated_password_length,
        )
        artifact = self._issue(self._subject_spec(client, name), CertificateRole.CLIENT)
        artifacts = [
            self._certificate_artifact(cert_path, artifact),
            key_artifact(key_path, artifact.private_key, password),
        ]

        if not self.writer.try_write_group(name, artifacts):
            self.summary.skipped.append(name)
            return

        if auto_generated:
            self._disclose_passwords(CLIENT_README_FILE, CLIENT_README_HEADER, artifacts)
        self._count(1)
        self.summary.completed.append(name)

    def _guarded(self, name: str, action: Callable[[], None]) -> None:
        try:
            action()
        except TlsToolError as e:
            LOGGER.error("Generating artifacts for %s failed: %s", name, e)
            self.summary.failures.append(EntityFailure(entity=name, error=str(e)))

    def _issue(self, spec: SubjectSpec, role: CertificateRole) -> CertificateArtifact:
        policy = policy_for(role)
        san_names = None
        if policy.include_san:
            san_names = expand_subject_alt_names(
                spec.name,
                spec.addresses,
                registered_oid=spec.registered_oid,
                include_internal=policy.include_internal_names,
            )
        return CertificateBuilder.issue(self.context, spec, policy, self.mode, san_names)

    def _subject_spec(self, entity: NodeConfig | ClientConfig, name: str) -> SubjectSpec:
        if isinstance(entity, NodeConfig):
            addresses = entity.addresses
            registered_oid = self.config.effective_oid(entity)
        else:
            addresses, registered_oid = [], None
        return SubjectSpec(
            name=name,
            distinguished_name=entity.dn,
            key_size=self.config.effective_key_size(entity),
            validity_days=self.config.effective_validity_days(entity),
            addresses=addresses,
            registered_oid=registered_oid,
        )

    def _paths(self, base: str) -> tuple[Path, Path]:
        suffix = "csr" if self.csr_mode else "pem"
        return self.target_directory / f"{base}.key", self.target_directory / f"{base}.{suffix}"

    def _certificate_artifact(self, path: Path, artifact: CertificateArtifact) -> OutputArtifact:
        if artifact.csr is not None:
            return OutputArtifact(path, serialize_csr(artifact.csr))
        signing_certificate, _ = self.context.signer()
        content = serialize_certificate_chain(artifact.certificate, signing_certificate)
        return OutputArtifact(path, content)

    def _cert_reference(self, cert_path: Path, kind: str, name: str) -> str:
        if self.csr_mode:
            return f"<path to {kind} certificate for {name}>"
        return str(cert_path)

    def _trusted_cas_reference(self) -> str:
        if self.csr_mode or self.context.root_ca_file is None:
            return TRUSTED_CA_PLACEHOLDER
        return str(self.context.root_ca_file)

    @staticmethod
    def _subject_dn(artifact: CertificateArtifact) -> str:
        subject = artifact.csr.subject if artifact.csr is not None else artifact.certificate.subject
        return subject.rfc4514_string()

    def _count(self, issued: int) -> None:
        if self.csr_mode:
            self.summary.csrs_generated += issued
        else:
            self.summary.certificates_generated += issued

    def _disclose_passwords(
        self, readme: str, header: str, artifacts: list[OutputArtifact]
    ) -> None:
        self.summary.password_auto_generated = True
        try:
            for artifact in artifacts:
                if artifact.password:
                    self.writer.append_note(
                        self.target_directory / readme,
                        header,
                        password_note(artifact.path, artifact.password),
                    )
        except ArtifactWriteError:
            # A key whose password was never recorded cannot be used
            self.writer.remove_group(artifacts)
            raise

    def _node_name(self, node: NodeConfig, index: int) -> str:
        try:
            return entity_file_name(node.name, node.dn, node.dns, f"node{index + 1}")
        except ConfigurationError:
            return f"node{index + 1}"

    def _client_name(self, client: ClientConfig, index: int) -> str:
        try:
            return entity_file_name(client.name, client.dn, None, f"client{index + 1}")
        except ConfigurationError:
            return f"client{index + 1}"

    def _configured_dns(
        self,
        entities: list[NodeConfig] | list[ClientConfig],
        role: CertificateRole,
        naming: Callable[[NodeConfig | ClientConfig, int], str],
    ) -> list[tuple[str, str]]:
        # DNs of every configured entity, including those skipped because their files exist
        result = []
        for index, entity in enumerate(entities):
            name = naming(entity, index)
            try:
                subject = create_subject(entity.dn, name, role, self.mode)
            except ConfigurationError:
                continue
            result.append((name, subject.rfc4514_string()))
        return result

    def _admin_dns(self) -> list[str]:
        admins = [client for client in self.config.clients if client.admin]
        configured = self._configured_dns(admins, CertificateRole.CLIENT, self._client_name)
        return [dn for _, dn in configured]

    def _emit_config_snippets(self, nodes_dn: list[str]) -> None:
        defaults = self.config.defaults
        for entry in self.accumulator.entries:
            snippet = render_config_snippet(
                entry,
                nodes_dn=nodes_dn,
                admin_dn=list(self.accumulator.admin_dns),
                verify_hostnames=defaults.verify_hostnames,
                resolve_hostnames=defaults.resolve_hostnames,
                csr_mode=self.csr_mode,
            )
            try:
                written = self.writer.write_if_absent(entry.snippet_path, snippet)
            except ArtifactWriteError as e:
                LOGGER.error("Writing config snippet for %s failed: %s", entry.node, e)
                self.summary.completed.remove(entry.node)
                self.summary.failures.append(EntityFailure(entity=entry.node, error=str(e)))
                continue
            if written:
                self.node_states[entry.node] = NodeState.CONFIG_EMITTED

    def _log_summary(self) -> None:
        summary = self.summary
        if self.csr_mode:
            LOGGER.info("Created %d certificate signing requests", summary.csrs_generated)
        else:
            LOGGER.info("Created %d certificates", summary.certificates_generated)
        if summary.skipped:
            LOGGER.info("Skipped because files exist: %s", ", ".join(summary.skipped))
        if summary.password_auto_generated:
            LOGGER.info(
                "Passwords for private keys were generated automatically; "
                "they are listed in the .readme files and config snippets"
            )
        if summary.failures:
            LOGGER.error("%d entities failed", len(summary.failures))
