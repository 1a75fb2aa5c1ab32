"""oathlib setup script"""
#=========================================================
#init script env - ensure cwd = root of source dir
#=========================================================
import os
root_dir = os.path.abspath(os.path.join(__file__,".."))
os.chdir(root_dir)

#=========================================================
#imports
#=========================================================
import re

from setuptools import setup

#=========================================================
#version string
#=========================================================
with open(os.path.join(root_dir, "oathlib", "__init__.py")) as vh:
    VERSION = re.search(r'^__version__\s*=\s*"(.*?)"\s*$', vh.read(), re.M).group(1)

#=========================================================
#static text
#=========================================================
SUMMARY = "OATH one-time passwords (HOTP / TOTP) and otpauth provisioning uris"

DESCRIPTION = """\
oathlib implements the OATH one-time password algorithms:
counter-based HOTP (RFC 4226) and time-based TOTP (RFC 6238),
along with the server-side validation protocols used to accept
tokens despite counter or clock drift.

It also builds and parses the ``otpauth://`` key provisioning URIs
used to enroll authenticator apps (typically via a QR code).

The library is pure python, has no dependencies outside the standard library,
performs no I/O, and all of its objects are immutable.
"""

KEYWORDS = "otp hotp totp oath rfc4226 rfc6238 otpauth two-factor 2fa authenticator"

#=========================================================
#config setup
#=========================================================
config = dict(
    #package info
    packages = [
        "oathlib",
            "oathlib.tests",
            "oathlib.utils",
        ],
    zip_safe=True,
    python_requires = ">=3.6",

    #metadata
    name = "oathlib",
    version = VERSION,
    license = "BSD",

    description = SUMMARY,
    long_description = DESCRIPTION,
    keywords = KEYWORDS,
    classifiers = [
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: BSD License",
        "Natural Language :: English",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Topic :: Security :: Cryptography",
        "Topic :: Software Development :: Libraries",
    ],

    extras_require = {
        "test": ["pytest"],
    },
)

#=========================================================
#build
#=========================================================
setup(**config)

#=========================================================
#EOF
#=========================================================
