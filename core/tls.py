"""
core/tls.py -- HTTP session pinned to the shadowd root certificate.

All shadowd hosts are reached over HTTPS and verified against a single
trusted certificate (PEM), never against the system trust store.
"""

import logging
import ssl
from pathlib import Path

import requests

from core.errors import InvalidCertificateError

logger = logging.getLogger("shadowc.tls")


def load_certificate(cert_path: str) -> str:
    """Check that cert_path holds a usable PEM certificate and return its path."""
    path = Path(cert_path)
    if not path.is_file():
        raise InvalidCertificateError(f"can't read certificate file {cert_path}: not a regular file")
    try:
        ssl.create_default_context(cafile=str(path))
    except (OSError, ssl.SSLError) as e:
        raise InvalidCertificateError(f"can't load certificate from {cert_path}: {e}") from e
    return str(path)


def make_session(cert_path: str) -> requests.Session:
    """Return a Session that trusts only the certificate at cert_path."""
    session = requests.Session()
    session.verify = load_certificate(cert_path)
    # The shadowd protocol has no redirects; refuse to follow any.
    session.max_redirects = 0
    logger.debug("using trusted certificate %s", cert_path)
    return session
