""" pgpysop :: Stateless OpenPGP operations on top of PGPy
"""

from .armor import Armor
from .armor import Dearmor
from .candidates import SessionKey
from .context import Context
from .credentials import Certs
from .credentials import Keys
from .credentials import Sigs
from .decrypt import Decrypt
from .encrypt import Encrypt
from .keys import ChangeKeyPassword
from .keys import ExtractCert
from .keys import GenerateKey
from .keys import RevokeKey
from .sign import InlineSign
from .sign import Sign
from .verification import Verification
from .verify import InlineDetach
from .verify import InlineVerify
from .verify import Verify

__all__ = ['constants',
           'errors',
           'Armor',
           'Dearmor',
           'SessionKey',
           'Context',
           'Certs',
           'Keys',
           'Sigs',
           'Decrypt',
           'Encrypt',
           'ChangeKeyPassword',
           'ExtractCert',
           'GenerateKey',
           'RevokeKey',
           'InlineSign',
           'Sign',
           'Verification',
           'InlineDetach',
           'InlineVerify',
           'Verify', ]
