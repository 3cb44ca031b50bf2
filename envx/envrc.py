"""
Read and write the secrets file, '.envrc' by default.

The file uses the direnv format so it can also export the secrets into a
shell. Each environment's passphrase is stored as '<ENVIRONMENT>_SECRET':

    export PRODUCTION_SECRET='...'
"""

import logging
import pathlib
import re
import secrets
import typing

import dotenv

from .utils import ConfigurationError

log = logging.getLogger(__name__)

SECRETS_FILE = '.envrc'
SECRET_SUFFIX = '_SECRET'
HEADER = "# Secrets used by envx to encrypt and decrypt environment files.\n"


def secret_variable_name(environment: str) -> str:
    return f'{environment.upper()}{SECRET_SUFFIX}'


def secret_environment_name(variable: str) -> str:
    return variable[:-len(SECRET_SUFFIX)].lower()


def generate_secret(length: int = 32) -> str:
    """Return a random secret of `length` bytes, hex encoded."""
    return secrets.token_hex(length)


def read_envrc(path: pathlib.Path) -> typing.Dict[str, str]:
    if not path.is_file():
        log.debug(f"No secrets file at {path}")
        return {}

    log.debug(f"Reading secrets from {path}")
    values = dotenv.dotenv_values(path, interpolate=False)
    return {key: value for key, value in values.items() if value is not None}


def stored_secrets(values: typing.Mapping[str, str]) -> typing.List[str]:
    """Names of the variables that look like environment secrets."""
    return sorted(key for key in values if key.endswith(SECRET_SUFFIX))


def assignment(key: str, value: str) -> str:
    if "'" in value or '\n' in value:
        raise ConfigurationError(
            f"The value for {key} can't contain single quotes or newlines")
    return f"export {key}='{value}'\n"


def write_envrc(path: pathlib.Path, values: typing.Mapping[str, str]) -> pathlib.Path:
    """
    Store secrets in the secrets file.

    Existing assignments of the same keys are replaced where they are, every
    other line of the file is left untouched and new keys are appended.
    """
    lines = path.read_text().splitlines(keepends=True) if path.is_file() else [HEADER]
    pending = dict(values)

    for index, line in enumerate(lines):
        match = re.match(r'^\s*(?:export\s+)?([A-Za-z_][A-Za-z0-9_-]*)\s*=', line)
        if match and match.group(1) in pending:
            key = match.group(1)
            lines[index] = assignment(key, pending.pop(key))

    if lines and not lines[-1].endswith('\n'):
        lines[-1] += '\n'

    lines.extend(assignment(key, value) for key, value in pending.items())

    log.info(f"Writing {len(values)} secrets to {path}")
    path.write_text(''.join(lines))
    return path
