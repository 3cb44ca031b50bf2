import logging
import os
import pathlib
import typing

import attr

from . import report
from .envrc import SECRETS_FILE, read_envrc
from .files import EnvFile, find_env_files, find_environments
from .gpg import GPG
from .passphrase import Source, resolve
from .prompts import NoPrompter, Prompter
from .report import Reporter
from .utils import ConfigurationError, PreconditionError, relative_path

log = logging.getLogger(__name__)


@attr.s(frozen=True, kw_only=True)
class Workspace:
    """Everything a command needs to work on the files in one directory."""

    directory: pathlib.Path = attr.ib(converter=lambda p: pathlib.Path(p).resolve())
    gpg: GPG = attr.ib(factory=GPG)
    reporter: Reporter = attr.ib(factory=Reporter)
    prompter: Prompter = attr.ib(factory=NoPrompter)
    secrets_file: str = attr.ib(default=SECRETS_FILE)

    @property
    def secrets_path(self) -> pathlib.Path:
        return self.directory / self.secrets_file

    def rel(self, path: pathlib.Path) -> str:
        return relative_path(path, self.directory)

    def environments(self) -> typing.List[str]:
        return find_environments(self.directory)

    def env_files(
            self,
            environment: str,
            directory: typing.Optional[pathlib.Path] = None,
            recursive: bool = True) -> typing.List[EnvFile]:
        return find_env_files(environment, directory or self.directory, recursive=recursive)

    def require_gpg(self) -> None:
        if not self.gpg.is_available():
            raise PreconditionError(
                "GPG is not available. Install it (e.g. 'brew install gnupg' or "
                "'apt-get install gnupg') to encrypt and decrypt files.")

    def secrets(
            self,
            directory: typing.Optional[pathlib.Path] = None) -> typing.Dict[str, str]:
        """
        Secrets from the process environment, then the secrets file.

        A secrets file in `directory` overrides the one in the workspace root.
        """
        secrets = dict(os.environ)
        secrets.update(read_envrc(self.secrets_path))
        if directory is not None and directory.resolve() != self.directory:
            secrets.update(read_envrc(directory / self.secrets_file))
        return secrets

    def passphrase(
            self,
            environment: str,
            passphrase: typing.Optional[str] = None,
            secret: typing.Optional[str] = None,
            directory: typing.Optional[pathlib.Path] = None,
            purpose: str = 'encryption') -> str:
        resolution = resolve(
            environment,
            passphrase=passphrase,
            secret=secret,
            secrets=self.secrets(directory))

        if resolution.source in (Source.CUSTOM, Source.CONVENTION):
            self.reporter.info(f"Using secret {report.path(resolution.variable)}")

        if not resolution.needs_prompt:
            return resolution.value

        try:
            return self.prompter.passphrase(
                f"Enter {purpose} passphrase for {environment}")
        except ConfigurationError as error:
            raise ConfigurationError(
                f"No passphrase for '{environment}': use --passphrase or set "
                f"{resolution.variable} in {self.secrets_file}") from error
