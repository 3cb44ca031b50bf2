import enum
import logging
import typing

import attr

from .envrc import secret_variable_name

log = logging.getLogger(__name__)


class Source(enum.Enum):
    PROVIDED = 'provided'
    CUSTOM = 'custom'
    CONVENTION = 'convention'
    PROMPT = 'prompt'


@attr.s(frozen=True, kw_only=True)
class Resolution:
    source: Source = attr.ib()
    value: typing.Optional[str] = attr.ib(default=None, repr=False)
    variable: typing.Optional[str] = attr.ib(default=None)

    @property
    def needs_prompt(self) -> bool:
        return self.source is Source.PROMPT


def resolve(
        environment: str,
        passphrase: typing.Optional[str] = None,
        secret: typing.Optional[str] = None,
        secrets: typing.Mapping[str, str] = None) -> Resolution:
    """
    Choose the passphrase for an environment.

    An explicit passphrase wins, then the secret named by `secret`, then the
    '<ENVIRONMENT>_SECRET' variable. If none of these are set the caller has
    to prompt for one.
    """
    secrets = secrets or {}

    if passphrase and passphrase.strip():
        log.debug(f"Using the provided passphrase for {environment}")
        return Resolution(source=Source.PROVIDED, value=passphrase)

    if secret and secrets.get(secret):
        log.debug(f"Using {secret} as the passphrase for {environment}")
        return Resolution(source=Source.CUSTOM, value=secrets[secret], variable=secret)

    if secret:
        log.debug(f"Secret {secret} is not set, falling back to the default name")

    variable = secret_variable_name(environment)
    if secrets.get(variable):
        log.debug(f"Using {variable} as the passphrase for {environment}")
        return Resolution(source=Source.CONVENTION, value=secrets[variable], variable=variable)

    return Resolution(source=Source.PROMPT, variable=variable)
