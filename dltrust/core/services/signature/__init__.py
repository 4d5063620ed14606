"""
Signature verification — Sigstore (cosign) and GPG flows.
"""

from dltrust.core.services.signature.gpg import GpgVerifier
from dltrust.core.services.signature.release_managers import (
    PYTHON_RELEASE_MANAGERS,
    ReleaseManagerMap,
    SignerIdentity,
    get_python_release_manager,
)
from dltrust.core.services.signature.sigstore import SigstoreVerifier
from dltrust.core.services.signature.verifier import SignatureVerifier, verify_signature

__all__ = [
    "GpgVerifier",
    "PYTHON_RELEASE_MANAGERS",
    "ReleaseManagerMap",
    "SignatureVerifier",
    "SignerIdentity",
    "SigstoreVerifier",
    "get_python_release_manager",
    "verify_signature",
]
