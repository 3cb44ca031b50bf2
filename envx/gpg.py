import logging
import os
import pathlib
import subprocess
import tempfile
import typing

import attr

from .utils import PreconditionError, ToolInvocationError

log = logging.getLogger(__name__)

PROBE_TEXT = 'envx-passphrase-probe'


@attr.s(frozen=True)
class GPG:
    binary: str = attr.ib(default='gpg')
    verbose: bool = attr.ib(default=False)
    home: typing.Optional[pathlib.Path] = attr.ib(default=None)

    def command(self, arguments: typing.Sequence[str]) -> typing.Tuple[str, ...]:
        command: typing.Tuple[str, ...] = (
            self.binary, '--batch', '--yes',
            '--pinentry-mode', 'loopback',
            '--passphrase-fd', '0')
        if self.verbose:
            command = (*command, '--verbose')
        else:
            command = (*command, '--quiet')
        return (*command, *arguments)

    def environ(self) -> typing.Optional[typing.Dict[str, str]]:
        if self.home is None:
            return None
        return {**os.environ, 'GNUPGHOME': self.home.as_posix()}

    def run(self,
            arguments: typing.Sequence[str],
            passphrase: str) -> subprocess.CompletedProcess:
        """Run gpg with the passphrase on stdin. Output is left as bytes."""
        try:
            return subprocess.run(
                self.command(arguments),
                input=passphrase.encode('utf-8'),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=self.environ(),
                check=True)
        except FileNotFoundError as error:
            raise PreconditionError(
                f"GPG is not available ({self.binary} was not found)") from error
        except subprocess.CalledProcessError as error:
            stderr = error.stderr.decode('utf-8', errors='replace').strip()
            for line in stderr.splitlines():
                log.debug(line)
            raise ToolInvocationError(
                f"gpg exited with status {error.returncode}: "
                f"{stderr or 'no error output'}",
                stderr=stderr) from error

    def is_available(self) -> bool:
        """Check the gpg binary can be run by asking for its version."""
        try:
            result = subprocess.run(
                (self.binary, '--version'),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=self.environ())
        except OSError:
            log.debug(f"Could not run {self.binary}", exc_info=True)
            return False
        return result.returncode == 0

    def encrypt(
            self,
            plaintext: pathlib.Path,
            ciphertext: pathlib.Path,
            passphrase: str) -> subprocess.CompletedProcess:
        log.debug(f"Encrypting {plaintext} to {ciphertext}")
        return self.run([
            '--output', str(ciphertext),
            '--symmetric', str(plaintext),
        ], passphrase)

    def decrypt(
            self,
            ciphertext: pathlib.Path,
            plaintext: pathlib.Path,
            passphrase: str) -> subprocess.CompletedProcess:
        """Decrypt a file, writing the plaintext to another path."""
        log.debug(f"Decrypting {ciphertext} to {plaintext}")
        return self.run([
            '--output', str(plaintext),
            '--decrypt', str(ciphertext),
        ], passphrase)

    def read(self, ciphertext: pathlib.Path, passphrase: str) -> bytes:
        """Decrypt a file to memory, returning the exact plaintext bytes."""
        log.debug(f"Reading contents of {ciphertext}")
        return self.run(['--decrypt', str(ciphertext)], passphrase).stdout

    def self_test(self, passphrase: str) -> None:
        """
        Encrypt and decrypt a probe file with the passphrase.

        Raises ToolInvocationError if gpg can't round-trip the probe, so that
        a broken gpg setup is reported before any real file is touched.
        """
        log.debug("Testing gpg with a probe file")
        with tempfile.TemporaryDirectory(prefix='envx-') as directory:
            plaintext = pathlib.Path(directory) / 'probe.txt'
            ciphertext = pathlib.Path(directory) / 'probe.txt.gpg'
            plaintext.write_text(PROBE_TEXT)
            self.encrypt(plaintext, ciphertext, passphrase)
            if self.read(ciphertext, passphrase) != PROBE_TEXT.encode('utf-8'):
                raise ToolInvocationError(
                    "GPG test failed: decrypted probe did not match")
