"""Self-signed TLS material for the optional encrypted listener.

Generated once per image build, whether or not the container will ever run
with ``USE_SSL=true``. The running container never regenerates it.
"""

import datetime
import ipaddress
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

_LOGGER = logging.getLogger(__name__)

KEY_MODE = 0o600
CERT_MODE = 0o644


@dataclass(frozen=True)
class TlsMaterial:
    cert_path: Path
    key_path: Path
    subject_cn: str = "localhost"
    san_entries: tuple[str, ...] = field(default=("DNS:localhost", "IP:127.0.0.1"))
    validity_days: int = 365
    key_size: int = 4096


def _san_names(entries: tuple[str, ...]) -> list[x509.GeneralName]:
    names: list[x509.GeneralName] = []
    for entry in entries:
        kind, _, value = entry.partition(":")
        if kind == "DNS":
            names.append(x509.DNSName(value))
        elif kind == "IP":
            names.append(x509.IPAddress(ipaddress.ip_address(value)))
        else:
            raise ValueError(f"Unsupported subjectAltName entry: {entry}")
    return names


def _write(path: Path, data: bytes, mode: int) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "wb") as f:
        # an existing file keeps its old mode through open(); narrow it before any bytes land
        os.fchmod(f.fileno(), mode)
        f.write(data)


def provision_tls(ssl_dir: Path, key_size: int = 4096, validity_days: int = 365) -> TlsMaterial:
    material = TlsMaterial(
        cert_path=ssl_dir / "cert.pem",
        key_path=ssl_dir / "key.pem",
        validity_days=validity_days,
        key_size=key_size,
    )
    ssl_dir.mkdir(parents=True, exist_ok=True)

    key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    subject = issuer = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, material.subject_cn)])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=validity_days))
        .add_extension(x509.SubjectAlternativeName(_san_names(material.san_entries)), critical=False)
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(key, hashes.SHA256())
    )

    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    _write(material.key_path, key_pem, KEY_MODE)
    _write(material.cert_path, cert.public_bytes(serialization.Encoding.PEM), CERT_MODE)
    _LOGGER.info(
        "generated self-signed certificate CN=%s (%s-bit, %s days) at %s",
        material.subject_cn,
        key_size,
        validity_days,
        material.cert_path,
    )
    return material
