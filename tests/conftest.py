"""pgpysop conftest"""
import pytest

import contextlib
import os
import sys
from datetime import datetime, timezone

from cryptography.hazmat.backends import openssl
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PublicKey

openssl_ver = openssl.backend.openssl_version_text().split(' ')[1]

# set the CWD and add to sys.path if we need to
os.chdir(os.path.join(os.path.abspath(os.path.dirname(__file__)), os.pardir))

if os.getcwd() not in sys.path:
    sys.path.insert(0, os.getcwd())
else:
    sys.path.insert(0, sys.path.pop(sys.path.index(os.getcwd())))

if os.path.join(os.getcwd(), 'tests') not in sys.path:
    sys.path.insert(1, os.path.join(os.getcwd(), 'tests'))

from pgpysop import Context
from pgpysop import ExtractCert
from pgpysop import GenerateKey
from pgpysop.credentials import Certs
from pgpysop.credentials import Keys
from pgpysop.hardware import Slot
from pgpysop.hardware import Token
from pgpysop.hardware import TokenTransaction
from pgpysop.pin import PinRejected
from pgpysop.pin import PinStore


# pytest hooks

# pytest_configure
# called after command line options have been parsed and all plugins and initial conftest files been loaded.
def pytest_configure(config):
    print("== pgpysop Test Suite ==")

    # display the working directory and the OpenSSL version
    print("Working Directory: " + os.getcwd())
    print("Using OpenSSL " + str(openssl_ver))
    print("")


# helpers shared by the test modules

def generate(uid='Alice <alice@example.org>', password=None, profile=None, signing_only=False):
    """A fresh transferable secret key, as armored bytes."""
    op = GenerateKey().userid(uid)
    if password is not None:
        op = op.with_key_password(password)
    if profile is not None:
        op = op.profile(profile)
    if signing_only:
        op = op.signing_only()
    out, _ = op.generate().to_bytes()
    return out


def extract(key):
    out, _ = ExtractCert().keys(Keys.load(key)).to_bytes()
    return out


def fixed_clock(when):
    return lambda: when


class FakeTransaction(TokenTransaction):
    def __init__(self, token):
        self.token = token

    def fingerprint(self, slot):
        key = self.token.slots.get(slot)
        if key is None:
            return None
        return bytes.fromhex(str(key.fingerprint).replace(' ', ''))

    def requires_touch(self, slot):
        return self.token.touch

    def verify_pin(self, pin, slot):
        self.token.presented.append(pin)
        if pin != self.token.pin:
            raise PinRejected(2)

    def sign(self, data):
        self.token.operations.append('sign')
        return self.token.slots[Slot.Signature]._key.keymaterial.__privkey__().sign(bytes(data))

    def decipher(self, cryptogram):
        self.token.operations.append('decipher')
        # A6 { 7F49 { 86 <32 octet point> } }
        point = bytes(cryptogram[-32:])
        privkey = self.token.slots[Slot.Decryption]._key.keymaterial.__privkey__()
        return privkey.exchange(X25519PublicKey.from_public_bytes(point))


class FakeToken(Token):
    """A token backed by software keys: EdDSA in the signature slot, Curve25519 ECDH for decryption."""

    def __init__(self, key, ident='0006:12345678', pin='123456', touch=False):
        self._ident = ident
        self.pin = pin
        self.touch = touch
        self.slots = {Slot.Signature: key}
        for subkey in key.subkeys.values():
            self.slots[Slot.Decryption] = subkey
        self.presented = []
        self.operations = []
        self.transactions = 0

    @property
    def ident(self):
        return self._ident

    @contextlib.contextmanager
    def transaction(self):
        self.transactions += 1
        yield FakeTransaction(self)


# fixtures

@pytest.fixture(scope='session')
def alice_key():
    return generate()


@pytest.fixture(scope='session')
def alice_cert(alice_key):
    return extract(alice_key)


@pytest.fixture(scope='session')
def bob_key():
    return generate('Bob <bob@example.org>')


@pytest.fixture(scope='session')
def bob_cert(bob_key):
    return extract(bob_key)


@pytest.fixture(scope='session')
def protected_key():
    return generate('Carol <carol@example.org>', password='sekrit')


@pytest.fixture
def pin_store(tmp_path):
    return PinStore(str(tmp_path / 'pins.json'))


@pytest.fixture
def token(alice_key):
    return FakeToken(Keys.load(alice_key).items[0].key)


@pytest.fixture
def card_context(token, pin_store):
    pin_store.set(token.ident, token.pin)
    return Context(pin_store=pin_store, tokens=lambda: [token])


@pytest.fixture
def card_keys(alice_cert):
    # only the certificate is known in software, the secret halves are on the token
    return Keys.load(alice_cert, 'card', allow_hardware=True)


@pytest.fixture
def now():
    return datetime.now(timezone.utc).replace(microsecond=0)
