"""Fixed X.509v3 extension templates per certificate role."""

from dataclasses import dataclass

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey
from cryptography.x509.oid import ExtendedKeyUsageOID

from .models import CertificateRole
from .san import subject_alt_name_extension


def _key_usage(
    digital_signature: bool = False,
    content_commitment: bool = False,
    key_encipherment: bool = False,
    key_cert_sign: bool = False,
    crl_sign: bool = False,
) -> x509.KeyUsage:
    return x509.KeyUsage(
        digital_signature=digital_signature,
        content_commitment=content_commitment,
        key_encipherment=key_encipherment,
        data_encipherment=False,
        key_agreement=False,
        key_cert_sign=key_cert_sign,
        crl_sign=crl_sign,
        encipher_only=False,
        decipher_only=False,
    )


# digitalSignature | nonRepudiation | keyEncipherment
_LEAF_KEY_USAGE = _key_usage(
    digital_signature=True, content_commitment=True, key_encipherment=True
)
_CA_KEY_USAGE = _key_usage(digital_signature=True, key_cert_sign=True, crl_sign=True)


@dataclass(frozen=True)
class ExtensionPolicy:
    """Extension set and criticality for one certificate role.

    Basic constraints, key usage and extended key usage are critical.
    Authority/subject key identifiers and subject alternative names are not.
    """

    role: CertificateRole
    basic_constraints: x509.BasicConstraints
    key_usage: x509.KeyUsage
    extended_key_usage: tuple[x509.ObjectIdentifier, ...] = ()
    include_san: bool = False
    include_internal_names: bool = False

    def build_extensions(
        self,
        san_names: list[x509.GeneralName] | None = None,
        subject_public_key: RSAPublicKey | None = None,
        issuer_public_key: RSAPublicKey | None = None,
    ) -> list[x509.Extension]:
        """Materialize the extension list in encoding order.

        Key identifiers are only added when the corresponding key is given;
        signing requests pass neither.
        """
        extensions: list[x509.Extension] = []

        if issuer_public_key is not None:
            aki = x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_public_key)
            extensions.append(x509.Extension(aki.oid, False, aki))
        if subject_public_key is not None:
            ski = x509.SubjectKeyIdentifier.from_public_key(subject_public_key)
            extensions.append(x509.Extension(ski.oid, False, ski))

        extensions.append(x509.Extension(self.basic_constraints.oid, True, self.basic_constraints))
        extensions.append(x509.Extension(self.key_usage.oid, True, self.key_usage))

        if self.extended_key_usage:
            eku = x509.ExtendedKeyUsage(list(self.extended_key_usage))
            extensions.append(x509.Extension(eku.oid, True, eku))

        if self.include_san:
            san = subject_alt_name_extension(san_names or [])
            if san is not None:
                extensions.append(x509.Extension(san.oid, False, san))

        return extensions


# cryptography rejects a path length on non-CA basic constraints, so leaves carry none
_LEAF_CONSTRAINTS = x509.BasicConstraints(ca=False, path_length=None)

POLICIES: dict[CertificateRole, ExtensionPolicy] = {
    CertificateRole.ROOT_CA: ExtensionPolicy(
        role=CertificateRole.ROOT_CA,
        basic_constraints=x509.BasicConstraints(ca=True, path_length=None),
        key_usage=_CA_KEY_USAGE,
    ),
    CertificateRole.INTERMEDIATE_CA: ExtensionPolicy(
        role=CertificateRole.INTERMEDIATE_CA,
        basic_constraints=x509.BasicConstraints(ca=True, path_length=0),
        key_usage=_CA_KEY_USAGE,
    ),
    CertificateRole.NODE_TRANSPORT: ExtensionPolicy(
        role=CertificateRole.NODE_TRANSPORT,
        basic_constraints=_LEAF_CONSTRAINTS,
        key_usage=_LEAF_KEY_USAGE,
        extended_key_usage=(ExtendedKeyUsageOID.SERVER_AUTH, ExtendedKeyUsageOID.CLIENT_AUTH),
        include_san=True,
        include_internal_names=True,
    ),
    CertificateRole.NODE_HTTP: ExtensionPolicy(
        role=CertificateRole.NODE_HTTP,
        basic_constraints=_LEAF_CONSTRAINTS,
        key_usage=_LEAF_KEY_USAGE,
        extended_key_usage=(ExtendedKeyUsageOID.SERVER_AUTH,),
        include_san=True,
        include_internal_names=False,
    ),
    CertificateRole.CLIENT: ExtensionPolicy(
        role=CertificateRole.CLIENT,
        basic_constraints=_LEAF_CONSTRAINTS,
        key_usage=_LEAF_KEY_USAGE,
        extended_key_usage=(ExtendedKeyUsageOID.CLIENT_AUTH,),
    ),
}


def policy_for(role: CertificateRole) -> ExtensionPolicy:
    return POLICIES[role]
