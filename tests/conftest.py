"""Shared test fixtures for rspamd_client tests."""

import logging
from collections.abc import Iterator

import pytest

from rspamd_client.keys import EphemeralKeyPair, keypair_from_secret
from tests.e2e_server import FakeRspamd

# Enable rspamd_client debug logging during tests
logging.getLogger("rspamd_client").setLevel(logging.DEBUG)
logging.getLogger("rspamd_client").addHandler(logging.StreamHandler())


# === Reference Vectors ===

# Remote public key used by the reference HTTPCrypt vectors
REFERENCE_REMOTE_KEY = "k4nz984k36xmcynm1hr9kdbn6jhcxf4ggbrb1quay7f88rpm9kay"
REFERENCE_REMOTE_KEY_HEX = "4a8bfb8f56d9bfc580589293af46103e71f68a36269020ddc4a09773485b5f61"

# derive_shared_secret(32 zero bytes, REFERENCE_REMOTE_KEY)
REFERENCE_SHARED_SECRET_HEX = "3d6ddcc364ae7fed947a9a3da5535d697fa6997067e002c888f3493308a39607"

SAMPLE_MESSAGE = (
    b"From: sender@example.com\r\n"
    b"To: rcpt@example.com\r\n"
    b"Subject: Test message\r\n"
    b"Message-ID: <test@example.com>\r\n"
    b"\r\n"
    b"Hello, this is a test message.\r\n"
)


# === Key Fixtures ===


@pytest.fixture(scope="session")
def server_keypair() -> EphemeralKeyPair:
    """Static server keypair.

    Session-scoped: shared by every fake server; never wiped.
    """
    return keypair_from_secret(bytes(range(1, 33)))


@pytest.fixture(scope="session")
def server_key_b32(server_keypair: EphemeralKeyPair) -> str:
    """Server public key in Rspamd base32 (value for Config.encryption_key)."""
    return server_keypair.public_key_b32


@pytest.fixture
def other_key_b32() -> str:
    """Valid public key the fake server does not hold."""
    return keypair_from_secret(bytes(range(100, 132))).public_key_b32


# === Server Fixtures ===


@pytest.fixture
def fake_rspamd(server_keypair: EphemeralKeyPair) -> Iterator[FakeRspamd]:
    """Fake Rspamd server, started for the duration of one test."""
    server = FakeRspamd(keypair=server_keypair)
    with server.serve():
        yield server
