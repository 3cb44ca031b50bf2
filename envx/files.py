"""
Locate environment files and keep copies of files before they are replaced.

An environment named 'production' has a plaintext file '.env.production' and
an encrypted counterpart '.env.production.gpg'. Either, or both, may exist.
"""

import contextlib
import datetime
import logging
import pathlib
import re
import shutil
import typing

import attr

from .utils import is_valid_environment_name

log = logging.getLogger(__name__)

ENCRYPTED_SUFFIX = '.gpg'
RESERVED_NAMES = frozenset({'example', 'template'})
IGNORED_DIRECTORIES = frozenset({
    '.git', '.hg', '.svn', '.tox', '.venv', 'venv',
    '__pycache__', 'node_modules',
})

ENV_FILE = re.compile(r'^\.env\.(?P<name>[^.]+)(?P<encrypted>\.gpg)?$')


@attr.s(frozen=True, kw_only=True)
class EnvFile:
    path: pathlib.Path = attr.ib()
    environment: str = attr.ib()
    encrypted: bool = attr.ib()

    def __str__(self):
        return self.path.name

    @property
    def exists(self) -> bool:
        return self.path.is_file()

    @property
    def plaintext(self) -> pathlib.Path:
        return decrypted_path(self.path) if self.encrypted else self.path

    @property
    def ciphertext(self) -> pathlib.Path:
        return self.path if self.encrypted else encrypted_path(self.path)

    @property
    def directory(self) -> pathlib.Path:
        return self.path.parent

    def read_plaintext(self) -> bytes:
        log.debug(f"Reading contents of {self.plaintext}")
        return self.plaintext.read_bytes()


def encrypted_path(path: pathlib.Path) -> pathlib.Path:
    return path.with_name(f'{path.name}{ENCRYPTED_SUFFIX}')


def decrypted_path(path: pathlib.Path) -> pathlib.Path:
    if not is_encrypted_file(path):
        raise ValueError(f"{path} is not an encrypted file")
    return path.with_name(path.name[:-len(ENCRYPTED_SUFFIX)])


def is_encrypted_file(path: pathlib.Path) -> bool:
    return path.name.endswith(ENCRYPTED_SUFFIX)


def parse_env_file(path: pathlib.Path) -> typing.Optional[EnvFile]:
    """Match a path against '.env.<name>[.gpg]', ignoring reserved names."""
    match = ENV_FILE.match(path.name)
    if match is None:
        return None

    name = match.group('name').lower()
    if name in RESERVED_NAMES or not is_valid_environment_name(name):
        return None

    return EnvFile(
        path=path,
        environment=name,
        encrypted=match.group('encrypted') is not None)


def find_environments(directory: pathlib.Path) -> typing.List[str]:
    """
    Find the names of environments with files in a directory.

    Only the directory itself is searched. Names are returned once each, even
    when both the plaintext and encrypted files exist.
    """
    log.info(f"Searching for environment files in {directory}")
    names = set()
    for path in directory.iterdir():
        env_file = parse_env_file(path)
        if env_file is not None and path.is_file():
            names.add(env_file.environment)
    log.info(f"Found {len(names)} environments in {directory}")
    return sorted(names)


def find_env_files(
        environment: str,
        directory: pathlib.Path,
        recursive: bool = True) -> typing.List[EnvFile]:
    """Find existing files for an environment in a directory and below it."""
    environment = environment.lower()
    pattern = '**/.env.*' if recursive else '.env.*'
    files = []
    for path in directory.glob(pattern):
        if ignored(path.relative_to(directory)) or not path.is_file():
            continue
        env_file = parse_env_file(path)
        if env_file is not None and env_file.environment == environment:
            files.append(env_file)
    log.info(f"Found {len(files)} files for {environment} in {directory}")
    return sorted(files, key=lambda f: f.path)


def ignored(path: pathlib.Path) -> bool:
    return any(part in IGNORED_DIRECTORIES for part in path.parts[:-1])


def group_by_directory(
        files: typing.Iterable[EnvFile]) -> typing.Dict[pathlib.Path, typing.List[EnvFile]]:
    groups: typing.Dict[pathlib.Path, typing.List[EnvFile]] = {}
    for env_file in files:
        groups.setdefault(env_file.directory, []).append(env_file)
    return {directory: groups[directory] for directory in sorted(groups)}


def create_backup(path: pathlib.Path) -> pathlib.Path:
    timestamp = datetime.datetime.now().strftime('%Y%m%d%H%M%S%f')
    backup = path.with_name(f'{path.name}.backup.{timestamp}')
    log.debug(f"Backing up {path} to {backup}")
    shutil.copy2(path, backup)
    return backup


def restore_backup(backup: pathlib.Path, path: pathlib.Path) -> None:
    log.debug(f"Restoring {path} from {backup}")
    shutil.move(str(backup), str(path))


def remove_backup(backup: pathlib.Path) -> None:
    log.debug(f"Removing backup {backup}")
    backup.unlink()


@contextlib.contextmanager
def backed_up(path: pathlib.Path) -> typing.Iterator[typing.Optional[pathlib.Path]]:
    """
    Keep a copy of a file while it is being replaced.

    The copy is moved back over the file if the body raises, and deleted if
    the body completes. Nothing is copied if the file doesn't exist yet, and
    anything the body left at the path is removed if it raises.
    """
    if not path.exists():
        try:
            yield None
        except BaseException:
            if path.exists():
                log.debug(f"Removing partially written {path}")
                path.unlink()
            raise
        return

    backup = create_backup(path)
    try:
        yield backup
    except BaseException:
        restore_backup(backup, path)
        raise
    remove_backup(backup)


def default_template(environment: str) -> str:
    return (
        f"# Environment variables for {environment}\n"
        f"# Add one KEY=value pair per line, then encrypt this file with:\n"
        f"#   envx encrypt -e {environment}\n"
        f"\n"
    )


def create_env_file(
        path: pathlib.Path,
        environment: str,
        template: typing.Optional[pathlib.Path] = None) -> pathlib.Path:
    log.debug(f"Creating {path} from {template or 'the default template'}")
    if template is not None:
        shutil.copyfile(template, path)
    else:
        path.write_text(default_template(environment))
    return path
