"""
Sigstore verification through ``cosign verify-blob``.

Keyless: trust comes from the Fulcio certificate embedded in the bundle,
pinned to one certificate identity and OIDC issuer.  Any other signer,
however valid its certificate, fails verification.
"""

from __future__ import annotations

import logging
from pathlib import Path

from dltrust.adapters.shell.command import EXIT_NOT_FOUND, CommandRunner, run_command
from dltrust.core.errors import ToolUnavailableError
from dltrust.core.services.signature.release_managers import SignerIdentity

logger = logging.getLogger(__name__)

_COSIGN_TIMEOUT = 120


class SigstoreVerifier:
    """Thin wrapper over the ``cosign`` binary.

    Args:
        runner: Command runner (``run_command`` signature).
        cosign_bin: cosign executable name or path.
    """

    def __init__(self, runner: CommandRunner = run_command, cosign_bin: str = "cosign"):
        self._run = runner
        self._cosign = cosign_bin

    def build_command(
        self,
        file_path: Path,
        signer: SignerIdentity,
        *,
        bundle: Path | None = None,
        signature: Path | None = None,
        certificate: Path | None = None,
    ) -> list[str]:
        cmd = [self._cosign, "verify-blob"]
        if bundle is not None:
            cmd += ["--bundle", str(bundle)]
        elif signature is not None and certificate is not None:
            cmd += ["--signature", str(signature), "--certificate", str(certificate)]
        else:
            raise ValueError("either bundle or signature and certificate are required")
        cmd += [
            "--certificate-identity", signer.identity,
            "--certificate-oidc-issuer", signer.issuer,
            str(file_path),
        ]
        return cmd

    def verify_blob(
        self,
        file_path: Path,
        signer: SignerIdentity,
        *,
        bundle: Path | None = None,
        signature: Path | None = None,
        certificate: Path | None = None,
    ) -> bool:
        """Verify ``file_path`` against a bundle or a ``.sig`` + ``.crt`` pair.

        Returns:
            True only when cosign exits 0.

        Raises:
            ToolUnavailableError: cosign is not installed.
        """
        cmd = self.build_command(
            file_path, signer, bundle=bundle, signature=signature, certificate=certificate,
        )
        if bundle is not None:
            logger.info("   Using bundled .sigstore file")
        else:
            logger.info("   Using separate .sig and .crt files")

        result = self._run(cmd, capture=True, timeout=_COSIGN_TIMEOUT)
        if result.returncode == EXIT_NOT_FOUND:
            raise ToolUnavailableError(
                "Sigstore verification unavailable: cosign not installed"
            )
        if result.ok:
            logger.info("   Sigstore signature verified (identity: %s)", signer.identity)
            return True

        logger.warning("Sigstore signature verification failed for %s", file_path.name)
        if result.output:
            logger.warning("cosign output:\n%s", result.output.strip())
        return False
