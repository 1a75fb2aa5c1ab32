"""oathlib utility functions"""
#=============================================================================
# imports
#=============================================================================
# core
import base64
from hmac import compare_digest
import logging; log = logging.getLogger(__name__)
import random
# pkg
from oathlib.exc import ExpectedTypeError, ExpectedStringError
# local
__all__ = [
    # helper classes
    "FrozenMixin",
    "SequenceMixin",

    # bytes<->unicode
    "to_unicode",

    # string manipulation
    "consteq",

    # base32 helpers
    "b32encode",
    "b32decode",

    # random
    "rng",
    "getrandbytes",
]

#=============================================================================
# helper classes
#=============================================================================
class FrozenMixin(object):
    """
    helper which makes instance attributes read-only.
    subclass constructors assign their attributes via :meth:`_freeze`,
    after which any attempt to set or delete an attribute raises
    :exc:`AttributeError`.
    """
    def _freeze(self, **attrs):
        self.__dict__.update(attrs)

    def __setattr__(self, name, value):
        raise AttributeError("%s instances are immutable" % type(self).__name__)

    def __delattr__(self, name):
        raise AttributeError("%s instances are immutable" % type(self).__name__)

class SequenceMixin(FrozenMixin):
    """
    helper which lets result object act like a fixed-length sequence.
    subclass just needs to provide :meth:`_as_tuple()`.
    """
    def _as_tuple(self):
        raise NotImplementedError("implement in subclass")

    def __repr__(self):
        return repr(self._as_tuple())

    def __getitem__(self, idx):
        return self._as_tuple()[idx]

    def __iter__(self):
        return iter(self._as_tuple())

    def __len__(self):
        return len(self._as_tuple())

    def __eq__(self, other):
        return self._as_tuple() == other

    def __ne__(self, other):
        return not self.__eq__(other)

    __hash__ = None

#=============================================================================
# bytes <-> unicode conversion helpers
#=============================================================================
def to_unicode(source, encoding="utf-8", param="value"):
    """take in unicode or bytes, return unicode

    if bytes provided, decodes using specified encoding.
    leaves unicode alone.

    :raises TypeError: if source is not unicode or bytes.

    :arg source: source bytes/unicode to process
    :arg encoding: encoding to use when decoding bytes instances
    :param param: optional name of variable/noun to reference when raising errors

    :returns: unicode object
    """
    if isinstance(source, str):
        return source
    elif isinstance(source, bytes):
        return source.decode(encoding)
    else:
        raise ExpectedStringError(source, param)

#=============================================================================
# string helpers
#=============================================================================
def consteq(left, right):
    """check two strings/bytes for equality, taking constant time relative
    to the size of the righthand input.

    This is used when comparing submitted tokens against generated ones,
    so that the comparison time reveals nothing about how many leading
    digits matched. Both inputs must be of the same type; unicode inputs
    must be ascii-only.
    """
    if isinstance(left, str):
        if not isinstance(right, str):
            raise TypeError("inputs must be both unicode or bytes")
    elif isinstance(left, bytes):
        if not isinstance(right, bytes):
            raise TypeError("inputs must be both unicode or bytes")
    else:
        raise TypeError("inputs must be both unicode or bytes")
    return compare_digest(left, right)

#=============================================================================
# base32 helpers
#=============================================================================
def b32encode(key):
    """
    wrapper around :func:`base64.b32encode` which strips padding,
    and returns a native string.
    """
    # NOTE: using upper case by default here, since base32 has less ambiguity
    #       in that case ('i & l' are visually more similar than 'I & L')
    return base64.b32encode(key).rstrip(b"=").decode("ascii")

def b32decode(key):
    """
    wrapper around :func:`base64.b32decode`
    which ignores case and whitespace, and inserts padding.

    :raises binascii.Error: if the string contains non-base32 characters.
    """
    if isinstance(key, str):
        key = key.encode("ascii")
    elif not isinstance(key, bytes):
        raise ExpectedTypeError(key, "str or bytes", "key")
    key = b"".join(key.split()).rstrip(b"=")
    pad = -len(key) % 8 # pad things so final string is multiple of 8
    return base64.b32decode(key + b"=" * pad, True)

#=============================================================================
# randomness
#=============================================================================

#: rng used to generate new secret keys
rng = random.SystemRandom()

def getrandbytes(rng, count):
    """return byte-string containing *count* number of randomly generated bytes, using specified rng"""
    if not count:
        return b""
    return rng.getrandbits(count << 3).to_bytes(count, "big")

#=============================================================================
# eof
#=============================================================================
