"""oathlib - OATH one-time-password (HOTP / TOTP) & otpauth uri utilities"""

__version__ = "1.0"

#=========================================================
#quickstart interface
#=========================================================
from oathlib.exc import (OathError, InvalidArgumentError, MalformedURIError,
                         IssuerMismatchError, OathWarning, OathSecurityWarning)
from oathlib.otp import (compute_otp, HOTP, TOTP, HotpToken, TotpToken,
                         HotpMatch, HOTPValidator, TOTPValidator)
from oathlib.keyuri import (HOTP_TYPE, TOTP_TYPE, OTPKey, OTPAuthURI,
                            OTPAuthURIBuilder, encode_label, encode_issuer,
                            from_uri)

__all__ = [
    # errors
    "OathError",
    "InvalidArgumentError",
    "MalformedURIError",
    "IssuerMismatchError",
    "OathWarning",
    "OathSecurityWarning",

    # otp
    "compute_otp",
    "HOTP",
    "TOTP",
    "HotpToken",
    "TotpToken",
    "HotpMatch",
    "HOTPValidator",
    "TOTPValidator",

    # key uris
    "HOTP_TYPE",
    "TOTP_TYPE",
    "OTPKey",
    "OTPAuthURI",
    "OTPAuthURIBuilder",
    "encode_label",
    "encode_issuer",
    "from_uri",
]

#=========================================================
#eof
#=========================================================
