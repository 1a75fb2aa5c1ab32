"""oathlib.utils.digest - HMAC support for the OTP algorithms

:rfc:`4226` fixes HOTP to HMAC-SHA1, while :rfc:`6238` allows TOTP
to use HMAC-SHA256 and HMAC-SHA512 as well. This module normalizes
the various spellings of those algorithm names, and hands out
cached ``prf(key, msg) -> digest`` callables for them.
"""
#=============================================================================
# imports
#=============================================================================
# core
import hashlib
import hmac
import logging; log = logging.getLogger(__name__)
import re
# pkg
from oathlib.exc import ExpectedTypeError, InvalidArgumentError
# local
__all__ = [
    # constants
    "HMAC_SHA1",
    "HMAC_SHA256",
    "HMAC_SHA512",
    "HMAC_ALGORITHMS",

    # hash utils
    "norm_hmac_name",

    # prf utils
    "get_prf",
]

def _clear_caches():
    """unittest helper -- clears norm_hmac_name() / get_prf() caches"""
    _nhn_cache.clear()
    _prf_cache.clear()

#=============================================================================
# hash helpers
#=============================================================================

#: canonical names of the supported algorithms
HMAC_SHA1 = "sha1"
HMAC_SHA256 = "sha256"
HMAC_SHA512 = "sha512"

#: all algorithms accepted by OTP generators, in order of digest size
HMAC_ALGORITHMS = (HMAC_SHA1, HMAC_SHA256, HMAC_SHA512)

# known hash names
_nhn_hash_names = [
    # format: (hashlib name, iana name, other known aliases ...)
    (HMAC_SHA1, "sha-1"),
    (HMAC_SHA256, "sha-256", "sha2-256"),
    (HMAC_SHA512, "sha-512", "sha2-512"),
]

# cache for norm_hmac_name()
_nhn_cache = {}

def norm_hmac_name(name):
    """Normalize HMAC algorithm name

    :arg name:
        Original algorithm name. This can be a :mod:`!hashlib` digest name
        (``"sha256"``), an IANA name (``"SHA-256"``), a JCA name
        (``"HmacSHA256"``), or a prf name (``"hmac-sha256"``).
        Case is ignored, and underscores are converted to hyphens.

    :raises InvalidArgumentError:
        if the name isn't one of the algorithms allowed by :rfc:`6238`.

    :returns:
        One of ``"sha1"``, ``"sha256"``, or ``"sha512"``.
    """
    try:
        return _nhn_cache[name]
    except KeyError:
        pass
    except TypeError:
        raise ExpectedTypeError(name, "str", "algorithm name")
    if not isinstance(name, str):
        raise ExpectedTypeError(name, "str", "algorithm name")
    orig = name

    # normalize input
    name = re.sub("[_ /]", "-", name.strip().lower())
    if name.startswith("hmac"):
        name = name[4:].lstrip("-")

    # look through standard names and known aliases
    for row in _nhn_hash_names:
        if name in row:
            _nhn_cache[orig] = row[0]
            return row[0]
    raise InvalidArgumentError("unsupported hmac algorithm: %r" % (orig,))

#=============================================================================
# prf lookup
#=============================================================================

# cache mapping algorithm name -> (func, digest_size)
_prf_cache = {}

def _get_hmac_prf(digest):
    """helper for get_prf() -- returns HMAC-based prf for specified digest"""
    const = getattr(hashlib, digest)
    digest_size = const().digest_size

    def prf(key, msg):
        return hmac.new(key, msg, const).digest()
    prf.__name__ = "hmac_" + digest
    prf.__doc__ = ("hmac_%s(key, msg) -> digest;"
                   " generated by oathlib.utils.digest.get_prf()" % digest)
    return prf, digest_size

def get_prf(name):
    """Lookup HMAC pseudo-random function by algorithm name.

    :arg name:
        Any name accepted by :func:`norm_hmac_name`.

    :raises InvalidArgumentError: if the name is not known

    :returns:
        a tuple of :samp:`({prf_func}, {digest_size})`, where:

        * :samp:`{prf_func}` has the signature
          ``prf_func(key, message) -> digest``.

        * :samp:`{digest_size}` is the number of bytes the function returns
          (20, 32, or 64).

    Usage example::

        >>> from oathlib.utils.digest import get_prf
        >>> hmac_sha256, dsize = get_prf("HmacSHA256")
        >>> dsize
        32
        >>> digest = hmac_sha256(b'key', b'message')
    """
    try:
        return _prf_cache[name]
    except (KeyError, TypeError):
        pass
    digest = norm_hmac_name(name)
    record = _prf_cache.get(digest)
    if record is None:
        record = _prf_cache[digest] = _get_hmac_prf(digest)
    _prf_cache[name] = record
    return record

#=============================================================================
# eof
#=============================================================================
