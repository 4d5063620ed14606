"""
GPG signature verification (detached and clearsigned) against per-language keyrings.

Keyring layout under the base directory (``GPG_KEYRING_DIR``)::

    <base>/<language>/keyring/pubring.kbx     prebuilt keyring, used as GNUPGHOME
    <base>/<language>/keys/*.asc|*.gpg        individual keys, imported on use
    <base>/<language>/*.asc|*.gpg             same, flat layout

Individual keys are imported into a throwaway GNUPGHOME so verification
never touches the user's own keyring.  A missing directory or an empty
key set raises ``KeyringError``.
"""

from __future__ import annotations

import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from dltrust.adapters.shell.command import EXIT_NOT_FOUND, CommandResult, CommandRunner, run_command
from dltrust.core.errors import KeyringError, ToolUnavailableError

logger = logging.getLogger(__name__)

_GPG_TIMEOUT = 60
_KEY_EXTENSIONS = ("asc", "gpg")

# Directory names accepted for each language, canonical name first
KEYRING_DIR_NAMES: dict[str, tuple[str, ...]] = {
    "python": ("python",),
    "node": ("node", "nodejs"),
    "go": ("go", "golang"),
}


class GpgVerifier:
    """Verifies detached signatures with the ``gpg`` binary.

    Args:
        keyring_dir: Base directory holding one subdirectory per language.
            None means no keyring is configured; every verification then
            raises ``KeyringError``.
        runner: Command runner (``run_command`` signature).
        gpg_bin: gpg executable name or path.
    """

    def __init__(
        self,
        keyring_dir: Path | None,
        runner: CommandRunner = run_command,
        gpg_bin: str = "gpg",
    ):
        self._base = Path(keyring_dir) if keyring_dir else None
        self._run = runner
        self._gpg = gpg_bin

    def _gpg_cmd(self, home: Path, *args: str) -> CommandResult:
        result = self._run(
            [self._gpg, "--batch", "--no-tty", *args],
            capture=True,
            timeout=_GPG_TIMEOUT,
            env_overrides={"GNUPGHOME": str(home)},
        )
        if result.returncode == EXIT_NOT_FOUND:
            raise ToolUnavailableError("GPG verification unavailable: gpg not installed")
        return result

    # ── Keyrings ───────────────────────────────────────────────

    def keyring_path(self, language: str) -> Path:
        """Keyring directory for ``language``.

        Raises:
            KeyringError: No keyring base is configured or no directory exists.
        """
        if self._base is None:
            raise KeyringError(
                f"No GPG keyring configured for {language} (set GPG_KEYRING_DIR)"
            )
        for name in KEYRING_DIR_NAMES.get(language, (language,)):
            path = self._base / name
            if path.is_dir():
                return path
        raise KeyringError(f"No GPG keyring found for {language} under {self._base}")

    @staticmethod
    def key_files(keyring: Path) -> list[Path]:
        keys_dir = keyring / "keys" if (keyring / "keys").is_dir() else keyring
        found: list[Path] = []
        for ext in _KEY_EXTENSIONS:
            found.extend(sorted(p for p in keys_dir.glob(f"*.{ext}") if p.is_file()))
        return found

    @contextmanager
    def gnupg_home(self, language: str) -> Iterator[Path]:
        """Yield a GNUPGHOME holding the public keys for ``language``.

        Raises:
            KeyringError: Missing keyring, no key files, or nothing imported.
        """
        keyring = self.keyring_path(language)

        prebuilt = keyring / "keyring"
        if (prebuilt / "pubring.kbx").is_file():
            listing = self._gpg_cmd(prebuilt, "--list-keys", "--with-colons")
            if not listing.ok:
                raise KeyringError(f"Failed to read GPG keyring for {language}: {prebuilt}")
            count = sum(1 for line in listing.stdout.splitlines() if line.startswith("pub:"))
            if count == 0:
                raise KeyringError(f"GPG keyring for {language} holds no keys: {prebuilt}")
            logger.info("   Using keyring with %d GPG key(s) for %s", count, language)
            yield prebuilt
            return

        keys = self.key_files(keyring)
        if not keys:
            raise KeyringError(f"No GPG key files found in {keyring}")

        with tempfile.TemporaryDirectory(prefix="dltrust-gnupg-") as tmp:
            home = Path(tmp)
            os.chmod(home, 0o700)
            imported = 0
            for key in keys:
                if self._gpg_cmd(home, "--import", str(key)).ok:
                    imported += 1
                    logger.debug("Imported GPG key: %s", key.name)
                else:
                    logger.warning("Failed to import GPG key: %s", key.name)
            if imported == 0:
                raise KeyringError(f"Failed to import any GPG keys for {language}")
            logger.info("   Imported %d/%d GPG keys for %s", imported, len(keys), language)
            yield home

    # ── Verification ───────────────────────────────────────────

    @staticmethod
    def _good_signature(result: CommandResult, status_text: str, label: str) -> bool:
        """Exit 0, a ``GOODSIG`` status line and no ``BADSIG``."""
        status = [line for line in status_text.splitlines() if line.startswith("[GNUPG:] ")]
        good = [line for line in status if " GOODSIG " in line]
        bad = any(" BADSIG " in line for line in status)

        if result.ok and good and not bad:
            signer = good[0].split(" ", 3)[-1]
            logger.info("   GPG signature verified (signer: %s)", signer)
            return True

        logger.error("GPG signature verification failed for %s", label)
        if result.stderr:
            logger.error("gpg output:\n%s", result.stderr.strip())
        return False

    def verify(self, file_path: Path, signature_path: Path, language: str) -> bool:
        """Verify a detached signature.

        Raises:
            KeyringError: No usable keys for ``language``.
            ToolUnavailableError: gpg is not installed.
        """
        with self.gnupg_home(language) as home:
            result = self._gpg_cmd(
                home, "--status-fd", "1", "--verify", str(signature_path), str(file_path),
            )
        return self._good_signature(result, result.stdout, file_path.name)

    def verify_clearsigned(self, signed_path: Path, language: str) -> str | None:
        """Verify a clearsigned document and return its signed body.

        Only the text gpg extracts from the signature is returned, so
        anything outside the signed block is dropped.  None when the
        signature does not verify.

        Raises:
            KeyringError: No usable keys for ``language``.
            ToolUnavailableError: gpg is not installed.
        """
        with self.gnupg_home(language) as home:
            result = self._gpg_cmd(
                home, "--status-fd", "2", "--output", "-", "--decrypt", str(signed_path),
            )
        if not self._good_signature(result, result.stderr, signed_path.name):
            return None
        return result.stdout
