""" keys.py

Generating keys, and the transforms that turn one key set into another.
"""
import copy
import logging
import warnings

from pgpy import PGPKey
from pgpy import PGPUID
from pgpy.constants import HashAlgorithm
from pgpy.constants import KeyFlags
from pgpy.constants import KeyServerPreferences
from pgpy.constants import RevocationReason
from pgpy.constants import SymmetricKeyAlgorithm
from pgpy.errors import PGPDecryptionError
from pgpy.errors import PGPError

from .constants import GENERATE_PROFILES
from .credentials import Certs
from .credentials import Credential
from .credentials import Keys
from .errors import KeyCannotSign
from .errors import KeyIsProtected
from .errors import Unimplemented
from .errors import UnsupportedProfile
from .operation import Operation
from .operation import Ready
from .operation import normalize_password
from .operation import password_variants

__all__ = ['GenerateKey',
           'ExtractCert',
           'ChangeKeyPassword',
           'RevokeKey', ]

logger = logging.getLogger(__name__)

# ciphers advertised in new self-signatures
ADVERTISED_CIPHERS = [SymmetricKeyAlgorithm.AES256,
                      SymmetricKeyAlgorithm.AES192,
                      SymmetricKeyAlgorithm.AES128]


def _unlocked(key, passwords):
    """
    Find the password that unlocks ``key`` (``None`` if it is not protected).

    :raises: :py:exc:`~pgpysop.errors.KeyIsProtected`
    """
    if not key.is_protected:
        return None
    for password in passwords:
        for variant in password_variants(password):
            try:
                with key.unlock(variant):
                    return variant
            except PGPDecryptionError:
                continue
    raise KeyIsProtected("Key {} could not be unlocked by any of the {} passwords provided"
                         "".format(key.fingerprint, len(passwords)))


class _KeysOut(Operation):
    def __init__(self, context=None):
        super(_KeysOut, self).__init__(context)
        self.armor = True

    def no_armor(self):
        return self._evolve(armor=False)


class GenerateKey(_KeysOut):
    def __init__(self, context=None):
        super(GenerateKey, self).__init__(context)
        self.profile_name = next(iter(GENERATE_PROFILES))
        self.sign_only = False
        self.key_password = None
        self.userids = []

    def profile(self, name):
        if name == 'default':
            name = next(iter(GENERATE_PROFILES))
        if name not in GENERATE_PROFILES:
            raise UnsupportedProfile("unknown key generation profile {!r}".format(name))
        return self._evolve(profile_name=name)

    def signing_only(self):
        return self._evolve(sign_only=True)

    def with_key_password(self, password):
        return self._evolve(key_password=normalize_password(password, 'Key password'))

    def userid(self, uid):
        return self._evolve(userids=self.userids + [uid])

    def generate(self):
        return self._bind(GenerateKeyReady)


class GenerateKeyReady(Ready):
    def _run(self, sink):
        op = self.op
        context = self.context
        if not op.userids:
            # PGPy refuses to bind subkeys to a primary key without a user ID
            raise Unimplemented("generating a key without any user ID is not supported")

        _, (alg, param), (subalg, subparam) = GENERATE_PROFILES[op.profile_name]
        logger.info("generating %s key (%s)", op.profile_name, alg.name)
        with warnings.catch_warnings():
            warnings.simplefilter('ignore')
            primary = PGPKey.new(alg, param)
            uidoptions = {
                'usage': {KeyFlags.Certify, KeyFlags.Sign},
                'primary': True,
                'hashes': list(context.hashes),
                'ciphers': ADVERTISED_CIPHERS,
                'compression': list(context.compression),
                'keyserver_flags': [KeyServerPreferences.NoModify],
            }
            for uid in op.userids:
                primary.add_uid(PGPUID.new(uid), **uidoptions)
                # only first User ID is Primary
                uidoptions.pop('primary', None)

            if not op.sign_only:
                subkey = PGPKey.new(subalg, subparam)
                primary.add_subkey(subkey, usage={KeyFlags.EncryptCommunications, KeyFlags.EncryptStorage})

            if op.key_password:
                primary.protect(op.key_password, SymmetricKeyAlgorithm.AES256, HashAlgorithm.SHA512)

        keys = Keys([Credential(primary)])
        if sink is not None:
            keys.save(sink, armor=op.armor)
        return keys


class ExtractCert(_KeysOut):
    def keys(self, keys):
        return self._bind(ExtractCertReady, keys)


class ExtractCertReady(Ready):
    def _run(self, sink):
        certs = self.source.certs()
        if sink is not None:
            certs.save(sink, armor=self.op.armor)
        return certs


class ChangeKeyPassword(_KeysOut):
    def __init__(self, context=None):
        super(ChangeKeyPassword, self).__init__(context)
        self.old_passwords = []
        self.new_password = None

    def old_key_password(self, password):
        return self._evolve(old_passwords=self.old_passwords + [password])

    def new_key_password(self, password):
        return self._evolve(new_password=normalize_password(password, 'New key password'))

    def keys(self, keys):
        return self._bind(ChangeKeyPasswordReady, keys)


class ChangeKeyPasswordReady(Ready):
    def _run(self, sink):
        op = self.op
        changed = []
        for credential in self.source:
            key = copy.copy(credential.key)
            if not op.new_password:
                if key.is_protected:
                    raise Unimplemented("removing the password from a key is not supported")
                changed.append(Credential(key, credential.source))
                continue

            password = _unlocked(key, op.old_passwords)
            with warnings.catch_warnings():
                warnings.simplefilter('ignore')
                if password is None:
                    key.protect(op.new_password, SymmetricKeyAlgorithm.AES256, HashAlgorithm.SHA512)
                else:
                    with key.unlock(password):
                        key.protect(op.new_password, SymmetricKeyAlgorithm.AES256, HashAlgorithm.SHA512)
            logger.info("changed password of %s", key.fingerprint)
            changed.append(Credential(key, credential.source))

        keys = Keys(changed, self.source.source)
        if sink is not None:
            keys.save(sink, armor=op.armor)
        return keys


class RevokeKey(_KeysOut):
    def __init__(self, context=None):
        super(RevokeKey, self).__init__(context)
        self.key_passwords = []

    def with_key_password(self, password):
        return self._evolve(key_passwords=self.key_passwords + [password])

    def keys(self, keys):
        return self._bind(RevokeKeyReady, keys)


class RevokeKeyReady(Ready):
    def _run(self, sink):
        op = self.op
        revoked = []
        for credential in self.source:
            key = credential.key
            try:
                password = _unlocked(key, [''] + op.key_passwords)
            except KeyIsProtected as e:
                raise KeyCannotSign(str(e))
            try:
                with warnings.catch_warnings():
                    warnings.simplefilter('ignore')
                    if password is None:
                        rsig = key.revoke(key, reason=RevocationReason.NotSpecified)
                    else:
                        with key.unlock(password):
                            rsig = key.revoke(key, reason=RevocationReason.NotSpecified)
            except PGPError as e:
                raise KeyCannotSign("could not revoke {}: {}".format(key.fingerprint, e))
            cert = key.pubkey
            cert |= rsig
            logger.info("revoked %s", key.fingerprint)
            revoked.append(Credential(cert, credential.source))

        certs = Certs(revoked, self.source.source)
        if sink is not None:
            certs.save(sink, armor=op.armor)
        return certs
