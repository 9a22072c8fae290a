"""Tests for HTTPS requests with client certificates."""

from __future__ import annotations

import datetime
import ipaddress
import ssl
import typing as t
from dataclasses import dataclass

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID
from pytest_httpserver import HTTPServer

from requestlite import ConnectionError, Request, ValidationError  # noqa: A004

if t.TYPE_CHECKING:
    from pathlib import Path

PASSPHRASE = "secret"


@dataclass(frozen=True)
class PKI:
    """Certificate files for a local CA, a server and a client."""

    ca: Path
    server_cert: Path
    server_key: Path
    client_cert: Path
    client_key: Path


def _name(common_name: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


def _issue(
    common_name: str,
    *,
    issuer: tuple[x509.Certificate, ec.EllipticCurvePrivateKey] | None = None,
    usage: x509.ObjectIdentifier | None = None,
) -> tuple[x509.Certificate, ec.EllipticCurvePrivateKey]:
    """Issue a CA certificate, or a leaf certificate when ``issuer`` is given."""
    key = ec.generate_private_key(ec.SECP256R1())
    now = datetime.datetime.now(datetime.timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(_name(common_name))
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(hours=1))
        .not_valid_after(now + datetime.timedelta(days=1))
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
    )
    if issuer is None:
        builder = (
            builder.issuer_name(_name(common_name))
            .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=False,
                    key_encipherment=False,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=True,
                    crl_sign=True,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
        )
        return builder.sign(key, hashes.SHA256()), key

    issuer_cert, issuer_key = issuer
    builder = (
        builder.issuer_name(issuer_cert.subject)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_key.public_key()),
            critical=False,
        )
        .add_extension(
            x509.SubjectAlternativeName(
                [x509.DNSName("localhost"), x509.IPAddress(ipaddress.ip_address("127.0.0.1"))],
            ),
            critical=False,
        )
    )
    if usage is not None:
        builder = builder.add_extension(x509.ExtendedKeyUsage([usage]), critical=False)
    return builder.sign(issuer_key, hashes.SHA256()), key


def _write_cert(path: Path, cert: x509.Certificate) -> Path:
    path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    return path


def _write_key(path: Path, key: ec.EllipticCurvePrivateKey, passphrase: str | None = None) -> Path:
    encryption: serialization.KeySerializationEncryption = (
        serialization.BestAvailableEncryption(passphrase.encode())
        if passphrase is not None
        else serialization.NoEncryption()
    )
    path.write_bytes(
        key.private_bytes(serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, encryption),
    )
    return path


@pytest.fixture
def pki(tmp_path: Path) -> PKI:
    """Test fixture issuing a CA, a server certificate and an encrypted client key."""
    ca = _issue("requestlite test CA")
    server_cert, server_key = _issue("localhost", issuer=ca, usage=ExtendedKeyUsageOID.SERVER_AUTH)
    client_cert, client_key = _issue("requestlite client", issuer=ca, usage=ExtendedKeyUsageOID.CLIENT_AUTH)
    return PKI(
        ca=_write_cert(tmp_path / "ca.pem", ca[0]),
        server_cert=_write_cert(tmp_path / "server.pem", server_cert),
        server_key=_write_key(tmp_path / "server.key", server_key),
        client_cert=_write_cert(tmp_path / "client.pem", client_cert),
        client_key=_write_key(tmp_path / "client.key", client_key, PASSPHRASE),
    )


def _serve(pki: PKI, *, require_client_cert: bool) -> HTTPServer:
    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH, cafile=str(pki.ca))
    context.load_cert_chain(str(pki.server_cert), str(pki.server_key))
    context.verify_mode = ssl.CERT_REQUIRED if require_client_cert else ssl.CERT_NONE
    server = HTTPServer(host="127.0.0.1", port=0, ssl_context=context)
    server.expect_request("/secure").respond_with_json({"secure": True})
    server.start()
    return server


@pytest.fixture
def https_server(pki: PKI) -> t.Generator[HTTPServer, None, None]:
    """Test fixture providing an HTTPS server signed by the test CA."""
    server = _serve(pki, require_client_cert=False)
    yield server
    server.stop()


@pytest.fixture
def mutual_tls_server(pki: PKI) -> t.Generator[HTTPServer, None, None]:
    """Test fixture providing an HTTPS server that requires a client certificate."""
    server = _serve(pki, require_client_cert=True)
    yield server
    server.stop()


class TestHTTPS:
    """Tests for requests over TLS."""

    async def test_https_with_ca(self, pki: PKI, https_server: HTTPServer) -> None:
        """Test that a server signed by the given CA is trusted."""
        url = https_server.url_for("/secure")
        assert url.startswith("https://")

        result = await Request("GET", url, {"json": True, "ca": str(pki.ca)}).run()

        assert result == {"secure": True}

    async def test_untrusted_server(self, https_server: HTTPServer) -> None:
        """Test that a server signed by an unknown CA fails to connect."""
        with pytest.raises(ConnectionError):
            await Request("GET", https_server.url_for("/secure"), {"json": True}).run()

    async def test_client_certificate_with_passphrase(self, pki: PKI, mutual_tls_server: HTTPServer) -> None:
        """Test that an encrypted client key is unlocked with the passphrase."""
        options = {
            "json": True,
            "cert": str(pki.client_cert),
            "key": str(pki.client_key),
            "passphrase": PASSPHRASE,
            "ca": pki.ca,
        }

        result = await Request("GET", mutual_tls_server.url_for("/secure"), options).run()

        assert result == {"secure": True}

    async def test_missing_client_certificate(self, pki: PKI, mutual_tls_server: HTTPServer) -> None:
        """Test that the server refusing the handshake is a connection error."""
        with pytest.raises(ConnectionError):
            await Request("GET", mutual_tls_server.url_for("/secure"), {"json": True, "ca": str(pki.ca)}).run()

    def test_wrong_passphrase(self, pki: PKI) -> None:
        """Test that a key that cannot be decrypted fails at construction."""
        options = {
            "cert": str(pki.client_cert),
            "key": str(pki.client_key),
            "passphrase": "wrong",
            "ca": str(pki.ca),
        }

        with pytest.raises(ValidationError, match="TLS"):
            Request("GET", "https://127.0.0.1/", options)
