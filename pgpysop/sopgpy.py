#!/usr/bin/env python3
# PYTHON_ARGCOMPLETE_OK
'''Stateless OpenPGP command line frontend for pgpysop

License: 3-clause BSD, same as PGPy itself
'''

import io
import sys
import logging
import packaging.version
from importlib import metadata

from datetime import datetime
from typing import List, Optional, Tuple, MutableMapping
from argparse import Namespace

import sop
import cryptography
from cryptography.hazmat.backends import openssl

from pgpy.constants import SymmetricKeyAlgorithm

from . import config
from ._author import __version__
from .armor import Armor, Dearmor
from .candidates import SessionKey
from .constants import ENCRYPT_PROFILES, GENERATE_PROFILES
from .context import Context
from .credentials import Certs, Keys, Sigs
from .decrypt import Decrypt
from .encrypt import Encrypt
from .keys import ExtractCert, GenerateKey
from .sign import InlineSign, Sign
from .verification import Verification
from .verify import InlineDetach, InlineVerify, Verify

logger = logging.getLogger(__name__)


def backend_version() -> Optional[packaging.version.Version]:
    # PGPy is published as PGPy13 for newer interpreters
    for dist in ('pgpy', 'pgpy13'):
        try:
            return packaging.version.Version(metadata.version(dist))
        except metadata.PackageNotFoundError:
            continue
    return None


def extended_version() -> str:
    '''the cryptography and OpenSSL builds underneath PGPy'''
    return (f'cryptography {cryptography.__version__}\n'
            f'{openssl.backend.openssl_version_text()}')


def list_profiles(command:str) -> List[Tuple[str, str]]:
    '''(name, description) of every profile ``command`` accepts, default first'''
    profiles = {'encrypt': ENCRYPT_PROFILES, 'generate-key': GENERATE_PROFILES}[command]
    return [(name, entry[0]) for name, entry in profiles.items()]


def _touch_prompt() -> None:
    print('Touch the OpenPGP card to confirm the operation', file=sys.stderr, flush=True)


def _sigresult(v:Verification) -> sop.SOPSigResult:
    return sop.SOPSigResult(v.created, str(v.key_fingerprint).replace(' ', ''),
                            str(v.cert_fingerprint).replace(' ', ''), sop.SOPSigType[v.mode.value])


def _profile_name(profile:Optional[sop.SOPProfile]) -> Optional[str]:
    # the sop dispatcher hands over the matching SOPProfile, direct callers may pass its name
    if profile is None or isinstance(profile, str):
        return profile
    return profile.name


class PGPySOP(sop.StatelessOpenPGP):
    def __init__(self, context:Optional[Context]=None) -> None:
        self.pgpy_version = backend_version()
        self.context = context if context is not None else Context.default(touch_prompt=_touch_prompt)
        super().__init__(name='pgpysop', version=__version__,
                         backend=f'PGPy {self.pgpy_version}',
                         extended=extended_version(),
                         description=f'Stateless OpenPGP using PGPy {self.pgpy_version}')

    @property
    def generate_key_profiles(self) -> List[sop.SOPProfile]:
        return [sop.SOPProfile(name, desc) for name, desc in list_profiles('generate-key')]

    @property
    def encrypt_profiles(self) -> List[sop.SOPProfile]:
        return [sop.SOPProfile(name, desc) for name, desc in list_profiles('encrypt')]

    def _get_certs(self, vals:MutableMapping[str,bytes]) -> Certs:
        certs = Certs()
        for handle, data in vals.items():
            certs += Certs.load(data, handle)
        return certs

    def _get_keys(self, vals:MutableMapping[str,bytes]) -> Keys:
        keys = Keys(allow_hardware=self.context.hardware)
        for handle, data in vals.items():
            keys += Keys.load(data, handle, allow_hardware=self.context.hardware)
        return keys

    def generate_key(self, armor:bool=True, uids:List[str]=[],
                     keypassword:Optional[bytes]=None,
                     profile:Optional[sop.SOPProfile]=None,
                     signing_only:bool=False,
                     **kwargs:Namespace) -> bytes:
        self.raise_on_unknown_options(**kwargs)
        op = GenerateKey(self.context)
        if profile is not None:
            op = op.profile(_profile_name(profile))
        if signing_only:
            op = op.signing_only()
        for uid in uids:
            op = op.userid(uid)
        if keypassword is not None:
            op = op.with_key_password(keypassword)
        if not armor:
            op = op.no_armor()
        out, _ = op.generate().to_bytes()
        return out

    def extract_cert(self,
                     key:bytes=b'',
                     armor:bool=True,
                     **kwargs:Namespace) -> bytes:
        self.raise_on_unknown_options(**kwargs)
        op = ExtractCert(self.context)
        if not armor:
            op = op.no_armor()
        out, _ = op.keys(Keys.load(key)).to_bytes()
        return out

    def sign(self,
             data:bytes=b'',
             armor:bool=True,
             sigtype:sop.SOPSigType=sop.SOPSigType.binary,
             signers:MutableMapping[str, bytes]={},
             wantmicalg:bool=False,
             keypasswords:MutableMapping[str,bytes]={},
             **kwargs:Namespace) -> Tuple[bytes, Optional[str]]:
        self.raise_on_unknown_options(**kwargs)
        op = Sign(self.context).mode(sigtype.name)
        if signers:
            op = op.add_signing_key(self._get_keys(signers))
        for pw in keypasswords.values():
            op = op.with_key_password(pw)
        if not armor:
            op = op.no_armor()
        out, micalg = op.data(data).to_bytes()
        return (out, micalg if wantmicalg else None)

    def verify(self,
               data:bytes,
               start:Optional[datetime]=None,
               end:Optional[datetime]=None,
               sig:bytes=b'',
               signers:MutableMapping[str,bytes]={},
               **kwargs:Namespace) -> List[sop.SOPSigResult]:
        self.raise_on_unknown_options(**kwargs)
        op = Verify(self.context).not_before(start).not_after(end)
        if signers:
            op = op.add_cert(self._get_certs(signers))
        op = op.signatures(Sigs.load(sig))
        _, verifications = op.data(data).to_bytes()
        return [_sigresult(v) for v in verifications]

    def encrypt(self,
                data:bytes,
                literaltype:sop.SOPLiteralDataType=sop.SOPLiteralDataType.binary,
                armor:bool=True,
                passwords:MutableMapping[str,bytes]={},
                signers:MutableMapping[str,bytes]={},
                keypasswords:MutableMapping[str,bytes]={},
                recipients:MutableMapping[str,bytes]={},
                profile:Optional[sop.SOPProfile]=None,
                **kwargs:Namespace) -> bytes:
        self.raise_on_unknown_options(**kwargs)
        op = Encrypt(self.context).mode(literaltype.name)
        if profile is not None:
            op = op.profile(_profile_name(profile))
        for handle, pw in passwords.items():
            logger.debug('adding password from %s', handle)
            op = op.add_password(pw)
        if signers:
            op = op.add_signing_key(self._get_keys(signers))
        for pw in keypasswords.values():
            op = op.add_key_password(pw)
        if recipients:
            op = op.add_cert(self._get_certs(recipients))
        if not armor:
            op = op.no_armor()
        out, _ = op.plaintext(data).to_bytes()
        return out

    def decrypt(self,
                data:bytes,
                wantsessionkey:bool=False,
                sessionkeys:MutableMapping[str,sop.SOPSessionKey]={},
                passwords:MutableMapping[str,bytes]={},
                signers:MutableMapping[str,bytes]={},
                start:Optional[datetime]=None,
                end:Optional[datetime]=None,
                keypasswords:MutableMapping[str,bytes]={},
                secretkeys:MutableMapping[str,bytes]={},
                **kwargs:Namespace) -> Tuple[bytes, List[sop.SOPSigResult], Optional[sop.SOPSessionKey]]:
        self.raise_on_unknown_options(**kwargs)
        op = Decrypt(self.context).verify_not_before(start).verify_not_after(end)
        for sk in sessionkeys.values():
            op = op.with_session_key(SessionKey(SymmetricKeyAlgorithm(sk.algo), bytes(sk.key)))
        for pw in passwords.values():
            op = op.with_password(pw)
        if signers:
            op = op.verify_with_cert(self._get_certs(signers))
        for pw in keypasswords.values():
            op = op.with_key_password(pw)
        if secretkeys:
            op = op.with_key(self._get_keys(secretkeys))
        out, result = op.ciphertext(data).to_bytes()

        sessionkey:Optional[sop.SOPSessionKey] = None
        if wantsessionkey and result.session_key is not None:
            sessionkey = sop.SOPSessionKey(int(result.session_key.algorithm), result.session_key.key)
        return (out, [_sigresult(v) for v in result.verifications], sessionkey)

    def armor(self, data:bytes,
              label:sop.SOPArmorLabel=sop.SOPArmorLabel.auto,
              **kwargs:Namespace) -> bytes:
        self.raise_on_unknown_options(**kwargs)
        out, _ = Armor(self.context).label(label.name).data(data).to_bytes()
        return out

    def dearmor(self, data:bytes, **kwargs:Namespace) -> bytes:
        self.raise_on_unknown_options(**kwargs)
        out, _ = Dearmor(self.context).data(data).to_bytes()
        return out

    def inline_detach(self,
                      clearsigned:bytes,
                      armor:bool=True,
                      **kwargs:Namespace) -> Tuple[bytes,bytes]:
        self.raise_on_unknown_options(**kwargs)
        out, sigs = InlineDetach(self.context).message(clearsigned).to_bytes()
        sigdata = io.BytesIO()
        sigs.save(sigdata, armor=armor)
        return (out, sigdata.getvalue())

    def inline_sign(self,
                    data:bytes,
                    armor:bool=True,
                    sigtype:sop.SOPInlineSigType=sop.SOPInlineSigType.binary,
                    signers:MutableMapping[str,bytes]={},
                    keypasswords:MutableMapping[str,bytes]={},
                    **kwargs:Namespace
                    ) -> bytes:
        self.raise_on_unknown_options(**kwargs)
        op = InlineSign(self.context).mode(sigtype.name)
        if signers:
            op = op.add_signing_key(self._get_keys(signers))
        for pw in keypasswords.values():
            op = op.with_key_password(pw)
        if not armor:
            op = op.no_armor()
        out, _ = op.data(data).to_bytes()
        return out

    def inline_verify(self, data:bytes,
                      start:Optional[datetime]=None,
                      end:Optional[datetime]=None,
                      signers:MutableMapping[str,bytes]={},
                      **kwargs:Namespace) -> Tuple[bytes, List[sop.SOPSigResult]]:
        self.raise_on_unknown_options(**kwargs)
        op = InlineVerify(self.context).not_before(start).not_after(end)
        if signers:
            op = op.add_cert(self._get_certs(signers))
        out, verifications = op.message(data).to_bytes()
        return (out, [_sigresult(v) for v in verifications])


def main() -> None:
    config.init_log()
    frontend = PGPySOP()
    frontend.dispatch()

if __name__ == '__main__':
    main()
