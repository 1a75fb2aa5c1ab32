"""oathlib.keyuri -- otpauth:// key provisioning uris

Implements the ``otpauth://{type}/{label}?{parameters}`` format popularized
by Google Authenticator's
`KeyUriFormat <https://github.com/google/google-authenticator/wiki/Key-Uri-Format>`_,
which is typically rendered as a QR code to enroll a client device.
"""
#=============================================================================
# imports
#=============================================================================
# core
import logging; log = logging.getLogger(__name__)
import re
from urllib.parse import quote, unquote
# pkg
from oathlib.exc import (InvalidArgumentError, MalformedURIError,
                         IssuerMismatchError, ExpectedTypeError)
from oathlib.otp import (HOTP, TOTP, DEFAULT_DIGITS, DEFAULT_TIME_STEP,
                         MAX_COUNTER, _check_digits, _check_serial, _decode_bytes)
from oathlib.utils import FrozenMixin, to_unicode, b32encode, rng, getrandbytes
# local
__all__ = [
    # otp types
    "HOTP_TYPE",
    "TOTP_TYPE",
    "OTP_TYPES",

    # escaping
    "encode_label",
    "encode_issuer",

    # uri model
    "OTPKey",
    "OTPAuthURI",
    "OTPAuthURIBuilder",
    "from_uri",
]

#=============================================================================
# constants
#=============================================================================

#: otpauth type names
HOTP_TYPE = "hotp"
TOTP_TYPE = "totp"

#: all known otpauth types
OTP_TYPES = (HOTP_TYPE, TOTP_TYPE)

#: characters left unescaped in the label (uri path segment):
#: the rfc 3986 sub-delims, plus ':' and '@'.
#: (quote() always leaves ascii letters, digits and '-._~' alone)
_LABEL_SAFE = "!$&'()*+,;=:@"

#: characters left unescaped in the issuer (uri query value):
#: as for the label, minus '+&=' (which have meaning in a query string),
#: plus '/?' (which are allowed in a query).
_ISSUER_SAFE = "!$'()*,;:@/?"

#: regex for splitting a uri into its components
_uri_re = re.compile(r"""
    ^
    otpauth://
    (?P<type>hotp|totp)
    /
    (?P<label>[^?#]*)
    \?
    (?P<query>[^#]*)
    \Z
    """, re.X)

#: regex matching a decimal uri parameter
_uint_re = re.compile(r"^[0-9]+\Z")

#: chars which would end the secret's query value
_key_reserved_re = re.compile(r"[&#]")

#=============================================================================
# escaping
#=============================================================================
def encode_label(label):
    """
    percent-encode a label for use as the path component of an otpauth uri.

    ASCII letters & digits, ``-._~``, ``:@`` and ``!$&'()*+,;=`` are left alone;
    everything else (including space, ``/`` and ``?``) is encoded as UTF-8,
    with uppercase hex escapes.

    >>> encode_label("Acme Corporation:alice@example.org")
    'Acme%20Corporation:alice@example.org'
    """
    if not isinstance(label, str):
        raise ExpectedTypeError(label, "str", "label")
    return quote(label, safe=_LABEL_SAFE)

def encode_issuer(issuer):
    """
    percent-encode an issuer for use as the value of the ``issuer`` uri parameter.

    Like :func:`encode_label`, except that ``+&=`` are escaped
    (so the value can't be confused with query syntax), and ``/?`` aren't.

    >>> encode_issuer("R&D / Labs")
    'R%26D%20/%20Labs'
    """
    if not isinstance(issuer, str):
        raise ExpectedTypeError(issuer, "str", "issuer")
    return quote(issuer, safe=_ISSUER_SAFE)

def _check_utf8(value, param):
    """reject strings (e.g. with lone surrogates) that can't be percent-encoded"""
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        raise InvalidArgumentError("%s is not encodable as utf-8" % param)
    return value

#=============================================================================
# otp key
#=============================================================================
class OTPKey(FrozenMixin):
    """
    An encoded shared secret, paired with the type of OTP it's used for.

    :arg str key:
        the secret, in the textual form it's transmitted in
        (typically base32, as used by the ``secret`` uri parameter).
        Must not be blank, or contain ``&`` or ``#``.

    :arg str type:
        ``"hotp"`` or ``"totp"`` (case insensitive).

    Instances are immutable, and compare equal when both key & type match.
    The key is never included in the repr.
    """
    #: encoded secret
    key = None

    #: otp type (``"hotp"`` or ``"totp"``)
    type = None

    def __init__(self, key, type):
        if not isinstance(key, str):
            raise ExpectedTypeError(key, "str", "key")
        if not key.strip():
            raise InvalidArgumentError("key must not be blank")
        if _key_reserved_re.search(key):
            raise InvalidArgumentError("key may not contain '&' or '#'")
        if not isinstance(type, str):
            raise ExpectedTypeError(type, "str", "type")
        type = type.lower()
        if type not in OTP_TYPES:
            raise InvalidArgumentError("unknown otp type: %r" % (type,))
        self._freeze(key=key, type=type)

    @classmethod
    def generate(cls, type, size=20):
        """
        create a new random key.

        :arg type: ``"hotp"`` or ``"totp"``
        :param size: size of secret in bytes (defaults to 20, per :rfc:`4226` recommendation)

        :returns: :class:`OTPKey` holding a base32-encoded secret
        """
        size = _check_serial(size, "size", minval=1)
        return cls(b32encode(getrandbytes(rng, size)), type)

    def decode(self):
        """return the raw secret bytes, treating :attr:`key` as base32"""
        return _decode_bytes(self.key, "base32")

    def __eq__(self, other):
        if not isinstance(other, OTPKey):
            return NotImplemented
        return self.key == other.key and self.type == other.type

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self):
        return hash((self.key, self.type))

    def __repr__(self):
        return "<OTPKey type=%r>" % (self.type,)

#=============================================================================
# uri
#=============================================================================
class OTPAuthURI(FrozenMixin):
    """
    A validated otpauth uri, as returned by :meth:`OTPAuthURIBuilder.build`.

    .. autoattribute:: key
    .. autoattribute:: label
    .. autoattribute:: issuer
    .. autoattribute:: digits
    .. autoattribute:: counter
    .. autoattribute:: time_step
    """
    #: :class:`OTPKey` instance
    key = None

    #: label (decoded), e.g. ``"Example:alice@example.org"``
    label = None

    #: issuer (decoded), or ``None``
    issuer = None

    #: number of digits in tokens
    digits = DEFAULT_DIGITS

    #: hotp counter (only rendered for hotp uris)
    counter = 0

    #: totp time step in milliseconds (only rendered for totp uris)
    time_step = DEFAULT_TIME_STEP

    def __init__(self, key, label, issuer, digits, counter, time_step):
        # NOTE: values are validated by OTPAuthURIBuilder, not here.
        self._freeze(key=key, label=label, issuer=issuer, digits=digits,
                     counter=counter, time_step=time_step)

    #=============================================================================
    # accessors
    #=============================================================================
    @property
    def type(self):
        """otp type (``"hotp"`` or ``"totp"``)"""
        return self.key.type

    @property
    def is_hotp(self):
        return self.key.type == HOTP_TYPE

    @property
    def is_totp(self):
        return self.key.type == TOTP_TYPE

    @property
    def period(self):
        """totp time step in seconds, as rendered in the uri"""
        return self.time_step // 1000

    @property
    def encoded_label(self):
        return encode_label(self.label)

    @property
    def encoded_issuer(self):
        """percent-encoded issuer, or ``None``"""
        if self.issuer is None:
            return None
        return encode_issuer(self.issuer)

    #=============================================================================
    # rendering
    #=============================================================================
    def _render(self, label, issuer):
        """render uri string from (possibly encoded) label & issuer"""
        parts = ["otpauth://%s/%s?secret=%s" % (self.type, label, self.key.key)]
        if issuer is not None:
            parts.append("issuer=%s" % issuer)
        parts.append("digits=%d" % self.digits)
        if self.is_hotp:
            parts.append("counter=%d" % self.counter)
        else:
            parts.append("period=%d" % self.period)
        return "&".join(parts)

    def to_uri(self):
        """
        render as otpauth uri, with the label and issuer percent-encoded.

        >>> builder = OTPAuthURIBuilder(OTPKey("123", "totp"), label="Acme:alice")
        >>> builder.build().to_uri()
        'otpauth://totp/Acme:alice?secret=123&digits=6&period=30'
        """
        return self._render(self.encoded_label, self.encoded_issuer)

    def to_plain_uri(self):
        """
        render as otpauth uri, without any percent-encoding.
        this is meant for display purposes only.
        """
        return self._render(self.label, self.issuer)

    def to_otp(self):
        """
        return a generator configured from this uri.

        :raises InvalidArgumentError:
            if the secret isn't valid base32.

        :returns:
            :class:`~oathlib.otp.HOTP` or :class:`~oathlib.otp.TOTP` instance.
            (for hotp uris, the :attr:`counter` must be tracked by the caller).
        """
        if self.is_hotp:
            return HOTP(self.key.key, format="base32", digits=self.digits)
        return TOTP(self.key.key, format="base32", digits=self.digits,
                    time_step=self.time_step)

    def __str__(self):
        return self.to_uri()

    def __repr__(self):
        return "<OTPAuthURI type=%r label=%r issuer=%r digits=%d>" % \
               (self.type, self.label, self.issuer, self.digits)

    def __eq__(self, other):
        if not isinstance(other, OTPAuthURI):
            return NotImplemented
        return self.to_uri() == other.to_uri()

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self):
        return hash(self.to_uri())

    #=============================================================================
    # eoc
    #=============================================================================

#=============================================================================
# uri builder
#=============================================================================
class OTPAuthURIBuilder(FrozenMixin):
    """
    Immutable configuration from which an :class:`OTPAuthURI` is built.

    :arg key:
        :class:`OTPKey` instance.

    :param str label:
        Account label, optionally prefixed by the issuer and a colon
        (e.g. ``"Example:alice@example.org"``).
        The account name must not be blank or contain ``:``;
        the issuer prefix (if any) must not be blank.
        Required by :meth:`build`.

    :param str issuer:
        Issuer name (e.g. ``"Example"``). Optional, must not be blank or contain ``:``.
        If the label also has an issuer prefix, the two must be equal.

    :param int digits:
        Number of digits in tokens, in range [6 .. 8]. Defaults to ``6``.

    :param int counter:
        Initial hotp counter. Defaults to ``0``. Ignored for totp keys.

    :param int time_step:
        Totp time step, in milliseconds. Defaults to ``30000``.
        Must be a whole number of seconds, since the uri carries seconds.
        Ignored for hotp keys.

    Each value is checked when given, raising :exc:`~oathlib.exc.InvalidArgumentError`.
    Use :meth:`replace` to derive a modified builder.
    """
    #=============================================================================
    # instance attrs
    #=============================================================================
    key = None
    label = None
    issuer = None
    digits = DEFAULT_DIGITS
    counter = 0
    time_step = DEFAULT_TIME_STEP

    #: issuer prefix parsed from label, or ``None``
    label_prefix = None

    #=============================================================================
    # init
    #=============================================================================
    def __init__(self, key, label=None, issuer=None, digits=None, counter=None,
                 time_step=None):
        if not isinstance(key, OTPKey):
            raise ExpectedTypeError(key, "OTPKey", "key")
        self._freeze(key=key)

        if label is not None:
            self._freeze(label=label, label_prefix=self._split_label(label))

        if issuer is not None:
            self._freeze(issuer=self._check_issuer(issuer))

        if digits is not None:
            self._freeze(digits=_check_digits(digits))

        if counter is not None:
            self._freeze(counter=_check_serial(counter, "counter", maxval=MAX_COUNTER))

        if time_step is not None:
            self._freeze(time_step=self._check_time_step(time_step))

    @staticmethod
    def _split_label(label):
        """
        validate label, and return its issuer prefix (or ``None``).
        the prefix is the text before the first ``:``, if that isn't the first character.
        """
        if not isinstance(label, str):
            raise ExpectedTypeError(label, "str", "label")
        _check_utf8(label, "label")
        index = label.find(":")
        if index > 0:
            prefix, account = label[:index], label[index+1:]
            if not prefix.strip():
                raise InvalidArgumentError("label's issuer prefix is blank")
        else:
            prefix, account = None, label
        if not account.strip():
            raise InvalidArgumentError("label's account name is missing or blank")
        if ":" in account:
            raise InvalidArgumentError("label's account name may not contain ':'")
        return prefix

    @staticmethod
    def _check_issuer(issuer):
        """check that issuer doesn't contain chars forbidden by KeyURI format"""
        if not isinstance(issuer, str):
            raise ExpectedTypeError(issuer, "str", "issuer")
        _check_utf8(issuer, "issuer")
        if not issuer.strip():
            raise InvalidArgumentError("issuer must not be blank")
        if ":" in issuer:
            raise InvalidArgumentError("issuer may not contain ':'")
        return issuer

    @staticmethod
    def _check_time_step(time_step):
        time_step = _check_serial(time_step, "time_step", minval=1)
        if time_step % 1000:
            raise InvalidArgumentError("time_step must be a whole number of seconds, got %d ms" %
                                       time_step)
        return time_step

    def replace(self, **kwds):
        """
        return copy of builder, with the specified settings replaced.
        accepts the same keywords as the constructor.

        >>> base = OTPAuthURIBuilder(OTPKey("123", "totp"), issuer="Acme")
        >>> uri = base.replace(label="Acme:alice").build()
        """
        for name in ("key", "label", "issuer", "digits", "counter", "time_step"):
            kwds.setdefault(name, getattr(self, name))
        return type(self)(**kwds)

    def __repr__(self):
        return "<OTPAuthURIBuilder type=%r label=%r issuer=%r digits=%d>" % \
               (self.key.type, self.label, self.issuer, self.digits)

    #=============================================================================
    # building
    #=============================================================================
    def build(self):
        """
        create :class:`OTPAuthURI` from this configuration.

        :raises InvalidArgumentError:
            if no label has been configured.

        :raises IssuerMismatchError:
            if the label's issuer prefix and the issuer are both set, but differ.
        """
        if self.label is None:
            raise InvalidArgumentError("label has not been configured")
        if self.issuer is not None and self.label_prefix is not None and \
                self.issuer != self.label_prefix:
            raise IssuerMismatchError(self.issuer, self.label_prefix)
        return OTPAuthURI(self.key, self.label, self.issuer, self.digits,
                          self.counter, self.time_step)

    #=============================================================================
    # uri parsing
    #=============================================================================
    @classmethod
    def from_uri(cls, uri):
        """
        create a builder from an otpauth uri (such as returned by :meth:`OTPAuthURI.to_uri`).

        :raises MalformedURIError:
            if the uri doesn't fit the otpauth grammar; if a parameter is
            missing, duplicated, unknown, blank, or not allowed for the otp type;
            or if a value fails the checks made by the constructor.

        :returns:
            :class:`OTPAuthURIBuilder` instance. Issuer / label prefix mismatches
            aren't detected until :meth:`build` is called.

        >>> uri = "otpauth://hotp/alice?secret=123&digits=6&counter=5"
        >>> OTPAuthURIBuilder.from_uri(uri).build().counter
        5
        """
        uri = to_unicode(uri, param="uri")
        result = _uri_re.match(uri)
        if not result:
            raise cls._uri_error(uri, "doesn't match otpauth://{type}/{label}?{query}")
        type = result.group("type")

        # decode label from uri path
        try:
            label = unquote(result.group("label"), errors="strict")
        except UnicodeDecodeError:
            raise cls._uri_error(uri, "label is not valid utf-8")
        if not label.strip():
            raise cls._uri_error(uri, "missing label")

        # parse query params
        params = {}
        for entry in result.group("query").split("&"):
            name, sep, value = entry.partition("=")
            if not sep:
                raise cls._uri_error(uri, "malformed query parameter")
            if name in params:
                raise cls._uri_error(uri, "duplicate parameter (%r)" % name)
            params[name] = value

        # secret (required)
        secret = params.pop("secret", None)
        if secret is None:
            raise cls._uri_error(uri, "missing 'secret' parameter")
        if not secret.strip():
            raise cls._uri_error(uri, "'secret' parameter is blank")

        # issuer (optional)
        issuer = params.pop("issuer", None)
        if issuer is not None:
            if not issuer.strip():
                raise cls._uri_error(uri, "'issuer' parameter is blank")
            try:
                issuer = unquote(issuer, errors="strict")
            except UnicodeDecodeError:
                raise cls._uri_error(uri, "'issuer' parameter is not valid utf-8")

        # numeric params
        digits = cls._uri_parse_int(uri, params.pop("digits", None), "digits")
        counter = params.pop("counter", None)
        period = params.pop("period", None)
        if type == HOTP_TYPE:
            if period is not None:
                raise cls._uri_error(uri, "'period' is not a valid hotp parameter")
            counter = cls._uri_parse_int(uri, counter, "counter")
            time_step = None
        else:
            if counter is not None:
                raise cls._uri_error(uri, "'counter' is not a valid totp parameter")
            time_step = cls._uri_parse_int(uri, period, "period") * 1000

        if params:
            raise cls._uri_error(uri, "unsupported parameters: %s" %
                                 ", ".join(repr(name) for name in sorted(params)))

        # hand values to constructor, so they get the same checks as direct input
        try:
            return cls(OTPKey(secret, type), label=label, issuer=issuer,
                       digits=digits, counter=counter, time_step=time_step)
        except InvalidArgumentError as err:
            raise cls._uri_error(uri, str(err)) from err

    @staticmethod
    def _uri_error(uri, reason):
        """uri parsing helper -- creates preformatted error"""
        log.debug("rejecting otpauth uri: %s", reason)
        return MalformedURIError(uri, reason)

    @classmethod
    def _uri_parse_int(cls, uri, source, param):
        """uri parsing helper -- strict int() wrapper for required params"""
        if source is None:
            raise cls._uri_error(uri, "missing %r parameter" % param)
        if not _uint_re.match(source):
            raise cls._uri_error(uri, "malformed %r parameter" % param)
        return int(source)

    #=============================================================================
    # eoc
    #=============================================================================

#=============================================================================
# public frontends
#=============================================================================
def from_uri(uri):
    """
    create an :class:`OTPAuthURIBuilder` from an otpauth uri.
    see :meth:`OTPAuthURIBuilder.from_uri` for details.

    :raises MalformedURIError:
        if the uri cannot be parsed or contains errors.
    """
    return OTPAuthURIBuilder.from_uri(uri)

#=============================================================================
# eof
#=============================================================================
