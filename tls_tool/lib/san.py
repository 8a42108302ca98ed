"""Subject alternative name derivation from node address configuration."""

import ipaddress
import re

from cryptography import x509

from .exceptions import ConfigurationError

_LABEL = re.compile(r"^[A-Za-z0-9_]([A-Za-z0-9_-]{0,61}[A-Za-z0-9_])?$")
_OID = re.compile(r"^[0-2](\.(0|[1-9][0-9]*))+$")


def _validate_dns_name(token: str, entity: str) -> str:
    name = token.rstrip(".")
    labels = name.split(".")

    if "*" in name:
        # Only a whole leftmost label may be a wildcard, and it must not be the only label
        if labels[0] != "*" or "*" in name[1:] or len(labels) < 3:
            raise ConfigurationError(f"invalid wildcard hostname pattern '{token}'", entity=entity)
        labels = labels[1:]

    if not name or len(name) > 253 or not all(_LABEL.match(label) for label in labels):
        raise ConfigurationError(f"invalid hostname '{token}'", entity=entity)

    return name


def classify_address(token: str, entity: str) -> x509.GeneralName:
    """Turn one configured address into a DNS or IP SAN entry."""
    token = token.strip()
    try:
        return x509.IPAddress(ipaddress.ip_address(token))
    except ValueError:
        pass
    return x509.DNSName(_validate_dns_name(token, entity))


def expand_subject_alt_names(
    entity: str,
    addresses: list[str],
    registered_oid: str | None = None,
    include_internal: bool = True,
) -> list[x509.GeneralName]:
    """Map a node's address list to an ordered, de-duplicated list of SAN entries.

    Entries keep the order of the input; the first occurrence of a
    (type, value) pair wins. Wildcard hostnames such as "*.example.com"
    are kept as wildcard DNS entries. The registered ID is an internal
    name and is appended only when include_internal is set.

    Raises:
        ConfigurationError: If an address or the OID is malformed
    """
    names: list[x509.GeneralName] = [classify_address(token, entity) for token in addresses]

    if include_internal and registered_oid:
        if not _OID.match(registered_oid):
            raise ConfigurationError(f"invalid registered OID '{registered_oid}'", entity=entity)
        names.append(x509.RegisteredID(x509.ObjectIdentifier(registered_oid)))

    seen: set[x509.GeneralName] = set()
    unique = []
    for name in names:
        if name not in seen:
            seen.add(name)
            unique.append(name)
    return unique


def subject_alt_name_extension(
    names: list[x509.GeneralName],
) -> x509.SubjectAlternativeName | None:
    """SAN extension value, or None when there is nothing to list."""
    if not names:
        return None
    return x509.SubjectAlternativeName(names)
