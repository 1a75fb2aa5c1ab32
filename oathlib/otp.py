"""oathlib.otp -- HOTP / RFC4226 and TOTP / RFC6238 generators & validators"""
#=============================================================================
# imports
#=============================================================================
# core
import base64
import binascii
import calendar
import logging; log = logging.getLogger(__name__)
import re
import struct
import time as _time
from warnings import warn
# pkg
from oathlib import exc
from oathlib.exc import InvalidArgumentError, ExpectedTypeError, OutOfRangeError
from oathlib.utils import (FrozenMixin, SequenceMixin, to_unicode, consteq,
                           b32decode)
from oathlib.utils.digest import HMAC_SHA1, get_prf, norm_hmac_name
# local
__all__ = [
    # core algorithm
    "compute_otp",

    # generators
    "HOTP",
    "TOTP",

    # validators
    "HOTPValidator",
    "TOTPValidator",

    # value objects
    "HotpToken",
    "TotpToken",
    "HotpMatch",

    # internal helpers
    "BaseOTP",
]

#=============================================================================
# constants
#=============================================================================

#: default number of digits in generated tokens
DEFAULT_DIGITS = 6

#: range of digits allowed for both HOTP & TOTP tokens
MIN_DIGITS = 6
MAX_DIGITS = 8

#: largest moving factor that fits in the 8 byte HOTP counter
MAX_COUNTER = (1 << 64) - 1

#: default TOTP time step, in milliseconds
DEFAULT_TIME_STEP = 30000

#: default number of counter values past the expected one which HOTPValidator checks
DEFAULT_LOOK_AHEAD_WINDOW = 2

#: default number of time steps before & after the current one which TOTPValidator checks
DEFAULT_WINDOW = 1

#: minimum key size (in bytes) required by RFC 4226 section 4 (R6);
#: smaller keys are accepted, but issue a warning.
MIN_KEY_SIZE = 16

#=============================================================================
# internal helpers
#=============================================================================

#: regex used to clean whitespace from tokens
_clean_re = re.compile(r"\s|-")

#: regex matching a normalized token
_digits_re = re.compile(r"^[0-9]+\Z")

def _check_serial(value, param, minval=0, maxval=None):
    """
    check that serial value (e.g. 'counter') is an integer within range,
    and return it.
    """
    if not isinstance(value, int) or isinstance(value, bool):
        raise ExpectedTypeError(value, "int", param)
    if value < minval or (maxval is not None and value > maxval):
        raise OutOfRangeError(param, value, minval, maxval)
    return value

def _check_digits(digits):
    """check that digit count is in the allowed range, and return it"""
    return _check_serial(digits, "digits", MIN_DIGITS, MAX_DIGITS)

def _decode_bytes(key, format):
    """
    internal BaseOTP() helper --
    decodes key according to specified format.
    """
    if format == "raw":
        if not isinstance(key, (bytes, bytearray)):
            raise ExpectedTypeError(key, "bytes", "key")
        return bytes(key)
    # for encoded data, key must be either unicode or ascii-encoded bytes,
    # and must contain a hex or base32 string.
    key = to_unicode(key, param="key")
    key = _clean_re.sub("", key)
    try:
        if format == "hex" or format == "base16":
            return base64.b16decode(key.upper().encode("ascii"))
        elif format == "base32":
            return b32decode(key)
    except (binascii.Error, UnicodeEncodeError) as err:
        raise InvalidArgumentError("key is not valid %s: %s" % (format, err)) from err
    raise InvalidArgumentError("unknown key format: %r" % (format,))

def _now_millis():
    """default clock -- current unix time in milliseconds"""
    return int(_time.time() * 1000)

#=============================================================================
# core algorithm
#=============================================================================
def compute_otp(key, counter, digits, alg=HMAC_SHA1):
    """
    implementation of lowlevel HOTP generation algorithm (:rfc:`4226` section 5.3),
    shared by both TOTP and HOTP classes.

    :arg key: secret key as raw bytes
    :arg counter: counter value (moving factor), as non-negative 64-bit integer
    :arg digits: number of digits in the result
    :param alg: hmac algorithm name (defaults to ``"sha1"``)

    :returns:
        token as a string of exactly *digits* decimal characters.

    This function performs no validation of its own,
    callers are expected to have range-checked *counter* and *digits*.
    """
    # generate digest
    prf, digest_size = get_prf(alg)
    digest = prf(key, struct.pack(">Q", counter))
    assert len(digest) == digest_size, "digest_size: sanity check failed"

    # derive 31-bit token value ("dynamic truncation")
    offset = digest[-1] & 0xF
    value = struct.unpack(">I", digest[offset:offset+4])[0] & 0x7fffffff

    # render to zero-padded decimal string
    return "%0*d" % (digits, value % (10 ** digits))

#=============================================================================
# token values
#=============================================================================
class _BaseToken(FrozenMixin):
    """
    common code shared by HotpToken & TotpToken.

    Tokens compare equal (and hash) by their decimal :attr:`value` alone,
    so two tokens generated with different settings that happen to
    produce the same digits are considered equal.
    """
    #: token as decimal-encoded string
    value = None

    #: number of digits in token
    digits = None

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.value == other.value

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self):
        return hash(self.value)

    def __str__(self):
        return self.value

class HotpToken(_BaseToken):
    """
    Object returned by :meth:`HOTP.generate`.

    .. autoattribute:: value
    .. autoattribute:: digits
    .. autoattribute:: moving_factor
    """
    #: counter value used to generate token
    moving_factor = None

    def __init__(self, value, digits, moving_factor):
        self._freeze(value=value, digits=digits, moving_factor=moving_factor)

    def __repr__(self):
        return "<HotpToken value=%r digits=%d moving_factor=%d>" % \
               (self.value, self.digits, self.moving_factor)

class TotpToken(_BaseToken):
    """
    Object returned by :meth:`TOTP.generate`.

    .. autoattribute:: value
    .. autoattribute:: digits
    .. autoattribute:: time
    .. autoattribute:: alg
    .. autoattribute:: time_step
    .. autoattribute:: counter
    .. autoattribute:: expire_time
    """
    #: OTP object that generated this token
    _otp = None

    #: timestamp (unix epoch milliseconds) token was generated for
    time = None

    #: hmac algorithm name used to generate token
    alg = None

    #: time step used to generate token, in milliseconds
    time_step = None

    #: HOTP counter value used to generate token (derived from time)
    counter = None

    def __init__(self, otp, value, time, counter):
        self._freeze(_otp=otp, value=value, time=time, counter=counter,
                     alg=otp.alg, digits=otp.digits, time_step=otp.time_step)

    @property
    def expire_time(self):
        """Timestamp (unix epoch milliseconds) marking end of period when token is valid"""
        return (self.counter + 1) * self.time_step

    @property
    def remaining(self):
        """number of milliseconds before token expires"""
        return max(0, self.expire_time - self._otp.now())

    def __repr__(self):
        return "<TotpToken value=%r time=%d alg=%r digits=%d time_step=%d>" % \
               (self.value, self.time, self.alg, self.digits, self.time_step)

class HotpMatch(SequenceMixin):
    """
    Object returned by :meth:`HOTP.verify` and :meth:`HOTPValidator.validate`.
    It can be treated as a tuple of ``(valid, moving_factor)``,
    or accessed via the following attributes:

    .. autoattribute:: valid
    .. autoattribute:: moving_factor
    .. autoattribute:: offset
    """
    #: bool flag indicating whether token matched
    #: (also reflected as object's boolean value)
    valid = False

    #: new moving factor (1 + matched counter value);
    #: or the previous moving factor if there was no match.
    #: callers must persist this value only if :attr:`valid` is true.
    #: a match at ``MAX_COUNTER`` yields ``2**64``: the counter is exhausted,
    #: and :meth:`HOTP.generate` / :meth:`HOTP.verify` will reject it as input.
    moving_factor = 0

    #: how many counter values were skipped between expected counter value
    #: and matched counter value (0 if there was no match).
    offset = 0

    def __init__(self, valid, moving_factor, offset=0):
        self._freeze(valid=valid, moving_factor=moving_factor, offset=offset)

    def _as_tuple(self):
        return (self.valid, self.moving_factor)

    def __bool__(self):
        return self.valid

#=============================================================================
# common code shared by TOTP & HOTP
#=============================================================================
class BaseOTP(FrozenMixin):
    """
    Base class for generating and verifying OTP codes.

    .. note::

        **This class shouldn't be used directly.**
        It's here to provide & document common functionality
        shared by the :class:`TOTP` and :class:`HOTP` classes.

    Constructor Options
    ===================
    :arg key:
        The secret key to use. By default this should be raw :class:`!bytes`
        (see **format** for other encodings).
        :rfc:`4226` requires at least 128 bits, and recommends 160;
        keys shorter than 16 bytes are accepted, but issue a
        :exc:`~oathlib.exc.OathSecurityWarning`.

    :arg str format:
        The encoding used by the **key** parameter. May be one of:
        ``"raw"`` (raw bytes, the default), ``"base32"`` (base32-encoded string),
        or ``"hex"`` (hexadecimal string).

    :param int digits:
        The number of digits in the generated / accepted tokens. Defaults to ``6``.
        Must be in range [6 .. 8].

    All instances are immutable; a single generator may be used to produce
    (or check) any number of tokens, from any number of threads.
    """
    #=============================================================================
    # class attrs
    #=============================================================================

    #: otpauth uri type that subclass implements ('totp' or 'hotp')
    type = None

    #=============================================================================
    # instance attrs
    #=============================================================================

    #: secret key as raw :class:`!bytes`
    key = None

    #: number of digits in the generated tokens.
    digits = DEFAULT_DIGITS

    #: name of hash algorithm in use (e.g. ``"sha1"``)
    alg = HMAC_SHA1

    #=============================================================================
    # init
    #=============================================================================
    def __init__(self, key, format="raw", digits=None, alg=None):
        if type(self) is BaseOTP:
            raise RuntimeError("BaseOTP() shouldn't be invoked directly -- use TOTP() or HOTP() instead")

        # validate & normalize alg
        alg = norm_hmac_name(alg or self.alg)

        # decode key
        key = _decode_bytes(key, format)
        if not key:
            raise InvalidArgumentError("key must not be empty")
        if len(key) < MIN_KEY_SIZE:
            # not fatal, so that existing (but ridiculously small) keys can still be used.
            warn("for security purposes, secret key should be >= %d bytes" % MIN_KEY_SIZE,
                 exc.OathSecurityWarning, stacklevel=3)

        # validate digits
        if digits is None:
            digits = self.digits
        digits = _check_digits(digits)

        self._freeze(key=key, alg=alg, digits=digits)

    def __repr__(self):
        # NOTE: key deliberately omitted
        return "<%s alg=%r digits=%d>" % (type(self).__name__, self.alg, self.digits)

    #=============================================================================
    # token helpers
    #=============================================================================
    def _generate(self, counter):
        """generate token string for specified (already validated) counter"""
        return compute_otp(self.key, counter, self.digits, self.alg)

    def normalize_token(self, token):
        """
        normalize OTP token representation:
        strips whitespace & hyphens, converts integers to zero-padded string.

        :arg token:
            token as ascii bytes, unicode, or an integer.

        :raises TypeError:
            if token is not a string or integer.

        :returns:
            token as unicode string containing only the digits 0-9;
            or ``None`` if token has the wrong number of digits,
            or contains non-numeric characters (such a token can never match).
        """
        digits = self.digits
        if isinstance(token, int) and not isinstance(token, bool):
            if token < 0:
                return None
            token = "%0*d" % (digits, token)
        else:
            token = to_unicode(token, param="token")
            token = _clean_re.sub("", token)
            if not _digits_re.match(token):
                return None
        if len(token) != digits:
            return None
        return token

    def _find_match(self, token, start, end):
        """
        helper for verify() implementations --
        returns counter value within specified range that matches token.

        :arg token:
            token value to match (will be normalized internally)

        :arg start:
            starting counter value to check

        :arg end:
            check up to (but not including) this counter value

        :returns:
            ``(valid, match)`` where ``match`` is the smallest counter value that matched
            (or ``0`` if no match).
        """
        token = self.normalize_token(token)
        if token is None:
            log.debug("%s: rejecting malformed token", type(self).__name__)
            return False, 0
        start = max(start, 0)
        end = min(end, MAX_COUNTER + 1)
        generate = self._generate
        for counter in range(start, end):
            if consteq(token, generate(counter)):
                return True, counter
        return False, 0

    #=============================================================================
    # eoc
    #=============================================================================

#=============================================================================
# HOTP helper
#=============================================================================
class HOTP(BaseOTP):
    """Helper for generating and verifying HOTP codes (:rfc:`4226`).

    Given a secret key and number of digits, this object offers methods
    for token generation and token validation. The hash algorithm is always
    HMAC-SHA1, as the RFC mandates.

    Constructor Options
    ===================
    Accepts the :class:`BaseOTP` constructor options **key**, **format**, and **digits**.

    Usage example::

        >>> from oathlib.otp import HOTP
        >>> h = HOTP(b'12345678901234567890')
        >>> h.generate(1).value
        '287082'
        >>> h.verify('287082', 0)
        (True, 2)
    """
    #=============================================================================
    # class attrs
    #=============================================================================

    #: otpauth type this class implements
    type = "hotp"

    #=============================================================================
    # init
    #=============================================================================
    def __init__(self, key, format="raw", digits=None):
        super(HOTP, self).__init__(key, format, digits=digits, alg=HMAC_SHA1)

    #=============================================================================
    # token management
    #=============================================================================
    def generate(self, moving_factor):
        """
        Generate HOTP token for specified counter value.

        :arg int moving_factor:
           counter value to use, in range ``[0, 2**64)``.

        :returns:
           :class:`HotpToken` instance.
        """
        moving_factor = _check_serial(moving_factor, "moving_factor", maxval=MAX_COUNTER)
        return HotpToken(self._generate(moving_factor), self.digits, moving_factor)

    def verify(self, token, moving_factor, window=DEFAULT_LOOK_AHEAD_WINDOW):
        """
        Validate HOTP token against specified counter.

        :arg token:
            token to validate.
            may be integer or string (whitespace and hyphens are ignored).

        :param int moving_factor:
            next counter value client was expected to use.

        :param window:
           How many additional steps past ``moving_factor`` to search when looking for a match.
           Must be >= 1, defaults to 2.

           .. note::
              This is a forward-looking window only, as searching backwards
              would allow token-reuse, defeating the whole purpose of HOTP.

        :returns:

           ``(valid, moving_factor)`` tuple (actually an :class:`HotpMatch` instance):

           * ``valid`` -- boolean indicating if token validated
           * ``moving_factor`` -- if token validated, this is the new counter value
             (matched counter value + 1); or the unchanged counter value if token didn't validate.
             If the token matched at ``MAX_COUNTER``, this is ``2**64``, which is past the
             counter range: the key is exhausted, and passing this value back raises an error.

        Usage example::

            >>> h = HOTP(b'12345678901234567890')
            >>> h.verify('969429', 3) # token matches counter
            (True, 4)
            >>> h.verify('969429', 1) # token within window
            (True, 4)
            >>> h.verify('969429', 0) # token outside window
            (False, 0)
        """
        moving_factor = _check_serial(moving_factor, "moving_factor", maxval=MAX_COUNTER)
        window = _check_serial(window, "window", minval=1)
        valid, match = self._find_match(token, moving_factor, moving_factor + window + 1)
        if valid:
            log.debug("hotp token matched at offset %d (window=%d)", match - moving_factor, window)
            return HotpMatch(True, match + 1, match - moving_factor)
        log.debug("hotp token did not match within window=%d", window)
        return HotpMatch(False, moving_factor)

    #=============================================================================
    # eoc
    #=============================================================================

#=============================================================================
# TOTP helper
#=============================================================================
class TOTP(BaseOTP):
    """Helper for generating and verifying TOTP codes (:rfc:`6238`).

    Constructor Options
    ===================
    In addition to the :class:`BaseOTP` constructor options, this class accepts:

    :param int time_step:
        The time-step period to use, in integer milliseconds. Defaults to ``30000``.

    :param str alg:
        Name of hash algorithm to use. Defaults to ``"sha1"``.
        ``"sha256"`` and ``"sha512"`` are also accepted, per :rfc:`6238`.

    :param now:
        Optional callable that should return current time (unix epoch milliseconds)
        for generator to use. Defaults to the system clock.
        This is mainly present for examples & unit-testing.

    Usage example::

        >>> from oathlib.otp import TOTP
        >>> t = TOTP(b'12345678901234567890', digits=8)
        >>> t.generate(59000).value
        '94287082'
        >>> t.verify('94287082', 59000)
        True
    """
    #=============================================================================
    # class attrs
    #=============================================================================

    #: otpauth type this class implements
    type = "totp"

    #=============================================================================
    # instance attrs
    #=============================================================================

    #: time step in milliseconds
    time_step = DEFAULT_TIME_STEP

    #: function returning current time in milliseconds
    now = staticmethod(_now_millis)

    #=============================================================================
    # init
    #=============================================================================
    def __init__(self, key, format="raw", time_step=None, digits=None, alg=None,
                 now=None):
        super(TOTP, self).__init__(key, format, digits=digits, alg=alg)

        if time_step is not None:
            self._freeze(time_step=_check_serial(time_step, "time_step", minval=1))

        # use custom timer --
        # intended for examples & unittests, not real-world use.
        if now is not None:
            if not callable(now):
                raise ExpectedTypeError(now, "callable", "now")
            self._freeze(now=now)

    def __repr__(self):
        return "<TOTP alg=%r digits=%d time_step=%d>" % (self.alg, self.digits, self.time_step)

    #=============================================================================
    # token management
    #=============================================================================

    #-------------------------------------------------------------------------
    # internal helpers
    #-------------------------------------------------------------------------
    def normalize_time(self, time):
        """
        Normalize time value to unix epoch milliseconds.

        :arg time:
            Can be ``None``, :class:`!datetime`,
            or unix epoch timestamp in milliseconds as :class:`!int` or :class:`!float`.
            If ``None``, uses current time (as reported by :attr:`now`).
            Naive datetimes are treated as UTC.

        :returns:
            unix epoch timestamp in milliseconds, as :class:`int`.
        """
        if isinstance(time, bool):
            raise ExpectedTypeError(time, "int, float, or datetime", "time")
        elif isinstance(time, int):
            return time
        elif isinstance(time, float):
            return int(time)
        elif time is None:
            return int(self.now())
        elif hasattr(time, "utctimetuple"):
            # coerce datetime to UTC timestamp
            # NOTE: utctimetuple() assumes naive datetimes are in UTC
            return calendar.timegm(time.utctimetuple()) * 1000 + time.microsecond // 1000
        else:
            raise ExpectedTypeError(time, "int, float, or datetime", "time")

    def _time_to_counter(self, time):
        """
        convert timestamp to HOTP counter using :attr:`time_step`.
        input is passed through :meth:`normalize_time`.
        """
        time = self.normalize_time(time)
        if time < 0:
            raise InvalidArgumentError("time must be >= 0")
        return time // self.time_step

    #-------------------------------------------------------------------------
    # token generation
    #-------------------------------------------------------------------------
    def generate(self, time=None):
        """
        Generate token for specified time.

        :arg time:
            Can be ``None``, :class:`!datetime`,
            or unix epoch timestamp in milliseconds.
            If ``None`` (the default), uses current time.

        :returns:
            :class:`TotpToken` instance.
        """
        time = self.normalize_time(time)
        counter = self._time_to_counter(time)
        return TotpToken(self, self._generate(counter), time, counter)

    #-------------------------------------------------------------------------
    # token verification
    #-------------------------------------------------------------------------
    def verify(self, token, time=None, window=DEFAULT_WINDOW):
        """
        Validate TOTP token against specified timestamp.
        Searches within a window of time steps before & after the provided time,
        in order to account for transmission delay and drift in the client's clock.

        :arg token:
            Token to validate.
            may be integer or string (whitespace and hyphens are ignored).

        :param time:
            Unix epoch timestamp in milliseconds, or :class:`!datetime`.
            if ``None`` (the default), uses current time.
            *this should correspond to the time the token was received from the client*.

        :param int window:
            How many time steps backward and forward to search for a match.
            Must be >= 0, defaults to ``1``.

        :returns:
            ``True`` if the token matched.

        Since no state is consulted or modified, repeated calls with
        the same arguments always return the same result.
        Preventing replay of an accepted token is up to the caller.
        """
        window = _check_serial(window, "window")
        counter = self._time_to_counter(time)
        valid, match = self._find_match(token, counter - window, counter + window + 1)
        if valid:
            log.debug("totp token matched at step offset %d (window=%d)", match - counter, window)
        else:
            log.debug("totp token did not match within window=%d", window)
        return valid

    #=============================================================================
    # eoc
    #=============================================================================

#=============================================================================
# validators
#=============================================================================
class HOTPValidator(FrozenMixin):
    """
    HOTP validation protocol (:rfc:`4226` section 7.2).

    Checks a submitted token against the expected moving factor, plus
    up to **look_ahead_window** further counter values, so that tokens
    generated by the client but never submitted don't desynchronize it
    from the server. Brute force cost is bounded to
    ``look_ahead_window + 1`` HMAC computations per call.

    Locking out an account after repeated failures is the caller's
    responsibility; this class only reports the outcome.

    :param int look_ahead_window:
        number of counter values past the expected one to check.
        Must be >= 1, defaults to 2.
    """
    look_ahead_window = DEFAULT_LOOK_AHEAD_WINDOW

    def __init__(self, look_ahead_window=DEFAULT_LOOK_AHEAD_WINDOW):
        self._freeze(look_ahead_window=_check_serial(look_ahead_window, "look_ahead_window", minval=1))

    def validate(self, key, moving_factor, digits, value):
        """
        Validate HOTP token.

        :arg bytes key: raw secret key
        :arg int moving_factor: counter value client is expected to use next
        :arg int digits: number of digits in token
        :arg value: submitted token

        :returns:
            :class:`HotpMatch` instance.
            On success its ``moving_factor`` is the matched counter + 1,
            which the caller should persist; on failure it is the unchanged
            ``moving_factor``.
        """
        return HOTP(key, digits=digits).verify(value, moving_factor, window=self.look_ahead_window)

class TOTPValidator(FrozenMixin):
    """
    TOTP validation protocol (:rfc:`6238` section 5.2).

    Accepts a submitted token if it matches any time step within
    **window** steps of the reference time. Unlike :class:`HOTPValidator`
    there is no moving factor to resynchronize; results are plain booleans.

    :param int window:
        number of time steps before & after the reference time to check.
        Must be >= 0, defaults to 1.
    """
    window = DEFAULT_WINDOW

    def __init__(self, window=DEFAULT_WINDOW):
        self._freeze(window=_check_serial(window, "window"))

    def is_valid(self, key, time_step, digits, alg, value, time=None):
        """
        Validate TOTP token.

        :arg bytes key: raw secret key
        :arg int time_step: time step in milliseconds
        :arg int digits: number of digits in token
        :arg str alg: hmac algorithm name
        :arg value: submitted token
        :param time:
            reference time (unix epoch milliseconds, or :class:`!datetime`);
            defaults to current system time.

        :returns: ``True`` if token is valid.
        """
        otp = TOTP(key, time_step=time_step, digits=digits, alg=alg)
        return otp.verify(value, time, window=self.window)

#=============================================================================
# eof
#=============================================================================
