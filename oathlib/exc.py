"""oathlib.exc -- exceptions & warnings raised by oathlib"""
#=============================================================================
# exceptions
#=============================================================================
class OathError(ValueError):
    """Base class for all errors raised by oathlib.

    :exc:`!OathError` derives from :exc:`ValueError`, since every error
    oathlib raises is the result of a bad input value (there is no I/O,
    and thus no transient failure class).
    """

class InvalidArgumentError(OathError):
    """Error raised when a generator, validator, or URI builder is configured
    with an out-of-range or otherwise unacceptable value: digits outside
    the allowed range, a negative counter or window, a non-positive time step,
    an unknown hash algorithm or OTP type, or malformed label / issuer text.

    This is always raised synchronously, before any HMAC computation is done.
    """

class MalformedURIError(OathError):
    """Error raised by :func:`oathlib.keyuri.from_uri` when a provisioning URI
    doesn't match the ``otpauth://{type}/{label}?{query}`` grammar, or when its
    query contains missing, duplicate, contradictory, unknown, or non-numeric
    parameters.

    .. attribute:: uri

        the URI string which failed to parse.
        (not included in the error message, since it may contain the secret).

    .. attribute:: reason

        short description of what was wrong with it.
    """
    def __init__(self, uri, reason):
        self.uri = uri
        self.reason = reason
        OathError.__init__(self, "invalid otpauth uri: %s" % (reason,))

class IssuerMismatchError(OathError):
    """Error raised by :meth:`oathlib.keyuri.OTPAuthURIBuilder.build`
    when the label's issuer prefix and the explicit issuer parameter
    are both present, but differ.

    This can't be detected until build time, since both values must be known.
    """
    def __init__(self, issuer, prefix):
        self.issuer = issuer
        self.prefix = prefix
        OathError.__init__(self, "issuer %r and label issuer prefix %r are different" %
                           (issuer, prefix))

#=============================================================================
# warnings
#=============================================================================
class OathWarning(UserWarning):
    """base class for oathlib's user warnings"""

class OathSecurityWarning(OathWarning):
    """Special warning issued when oathlib encounters something
    that might affect security.

    Currently this is issued when a generator is handed a secret key
    smaller than the 128 bit minimum required by :rfc:`4226`.
    """

#=============================================================================
# error constructors
#
# note: these functions return errors rather than raise them,
# so the caller's ``raise`` statement shows up in the traceback.
#=============================================================================
def type_name(value):
    """return pretty-printed string containing name of value's type"""
    cls = value.__class__
    if cls.__module__ and cls.__module__ not in ["__builtin__", "builtins"]:
        return "%s.%s" % (cls.__module__, cls.__name__)
    elif value is None:
        return 'None'
    else:
        return cls.__name__

def ExpectedTypeError(value, expected, param):
    """error message when param was supposed to be one type, but found another"""
    # NOTE: value is never displayed, since it may sometimes be a secret key.
    name = type_name(value)
    return TypeError("%s must be %s, not %s" % (param, expected, name))

def ExpectedStringError(value, param):
    """error message when param was supposed to be unicode or bytes"""
    return ExpectedTypeError(value, "str or bytes", param)

def OutOfRangeError(param, value, low, high=None):
    """error message when integer param is outside of its allowed range"""
    if high is None:
        return InvalidArgumentError("%s must be >= %d, got %d" % (param, low, value))
    return InvalidArgumentError("%s must be in range [%d, %d], got %d" %
                                (param, low, high, value))

#=============================================================================
# eof
#=============================================================================
