"""Distinguished name templating, file naming and DN pattern matching."""

import re
from fnmatch import fnmatchcase

from cryptography import x509
from cryptography.x509.oid import NameOID

from .exceptions import ConfigurationError
from .models import BuildMode, CertificateRole

_ATTR_NAME_OVERRIDES = {
    "E": NameOID.EMAIL_ADDRESS,
    "EMAILADDRESS": NameOID.EMAIL_ADDRESS,
    "SN": NameOID.SURNAME,
    "SERIALNUMBER": NameOID.SERIAL_NUMBER,
}

_UNSAFE_FILE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def parse_dn(dn: str, entity: str) -> x509.Name:
    """Parse an RFC 4514 DN string ("CN=node1,OU=Ops,O=Example") into an x509.Name."""
    try:
        return x509.Name.from_rfc4514_string(dn, _ATTR_NAME_OVERRIDES)
    except ValueError as e:
        raise ConfigurationError(f"invalid DN '{dn}': {e}", entity=entity) from e


def common_name(name: x509.Name) -> str | None:
    attributes = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attributes:
        return None
    value = attributes[-1].value
    return value if isinstance(value, str) else value.decode("utf-8")


def create_subject(
    dn: str | None, entity: str, role: CertificateRole, mode: BuildMode
) -> x509.Name:
    """Materialize the subject name for an entity.

    Signing requests carry the configured DN verbatim. Signed certificates
    whose DN has no CN get "CN=<entity>-<role suffix>" appended as the most
    specific RDN. Without any DN the subject is that CN alone (or the bare
    entity name for signing requests).
    """
    if dn is None or not dn.strip():
        if mode is BuildMode.SIGNING_REQUEST:
            value = entity
        else:
            value = f"{entity}-{role.dn_suffix}"
        return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, value)])

    name = parse_dn(dn, entity)
    if mode is BuildMode.SIGNING_REQUEST or common_name(name) is not None:
        return name

    default_cn = x509.RelativeDistinguishedName(
        [x509.NameAttribute(NameOID.COMMON_NAME, f"{entity}-{role.dn_suffix}")]
    )
    return x509.Name([*name.rdns, default_cn])


def entity_file_name(
    name: str | None, dn: str | None, addresses: list[str] | None, fallback: str
) -> str:
    """Derive the base file name for an entity's artifacts.

    Order of preference: configured name, CN of the DN, first address, fallback.
    """
    candidate = name
    if not candidate and dn:
        candidate = common_name(parse_dn(dn, fallback))
    if not candidate and addresses:
        candidate = addresses[0]
    if not candidate:
        candidate = fallback
    return _UNSAFE_FILE_CHARS.sub("_", candidate)


def _is_regex_pattern(pattern: str) -> bool:
    return len(pattern) > 1 and pattern.startswith("/") and pattern.endswith("/")


def compile_dn_pattern(pattern: str, entity: str) -> re.Pattern[str] | None:
    """Compile a /regex/ nodes_dn pattern; globs return None.

    Raises:
        ConfigurationError: If the regular expression is malformed
    """
    if not _is_regex_pattern(pattern):
        return None
    try:
        return re.compile(pattern[1:-1])
    except re.error as e:
        raise ConfigurationError(
            f"invalid nodes_dn pattern '{pattern}': {e}", entity=entity
        ) from e


def dn_matches_pattern(pattern: str, dn: str, entity: str) -> bool:
    """Match a DN against a nodes_dn pattern.

    Patterns enclosed in slashes are regular expressions matched against the
    whole DN; anything else is a glob with '*' and '?'.
    """
    regex = compile_dn_pattern(pattern, entity)
    if regex is not None:
        return regex.fullmatch(dn) is not None
    return fnmatchcase(dn, pattern)
