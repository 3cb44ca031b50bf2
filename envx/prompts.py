"""
Interactive questions, behind an interface so they can be turned off.
"""

import typing

import click

from .utils import ConfigurationError, normalize_environment_name

MINIMUM_PASSPHRASE_LENGTH = 4

Validator = typing.Callable[[str], typing.Any]


class Prompter:
    def passphrase(self, message: str) -> str:
        raise NotImplementedError

    def confirm(self, message: str, default: bool = True) -> bool:
        raise NotImplementedError

    def select(self, message: str, choices: typing.Sequence[str]) -> str:
        raise NotImplementedError

    def select_many(
            self,
            message: str,
            choices: typing.Sequence[str]) -> typing.List[str]:
        raise NotImplementedError

    def text(
            self,
            message: str,
            validate: typing.Optional[Validator] = None,
            default: typing.Optional[str] = None) -> str:
        raise NotImplementedError


def check_passphrase(value: str) -> str:
    if not value.strip():
        raise click.UsageError("Passphrase cannot be empty")
    if len(value) < MINIMUM_PASSPHRASE_LENGTH:
        raise click.UsageError(
            f"Passphrase must be at least {MINIMUM_PASSPHRASE_LENGTH} characters long")
    return value


def check_environment_name(value: str) -> str:
    try:
        return normalize_environment_name(value)
    except ConfigurationError as error:
        raise click.UsageError(error.message) from error


def parse_selection(choices: typing.Sequence[str]) -> Validator:
    """Accept a comma separated list of choices, or 'all'."""
    def convert(value: str) -> typing.List[str]:
        if value.strip() == 'all':
            return list(choices)
        selected = [item.strip() for item in value.split(',') if item.strip()]
        unknown = [item for item in selected if item not in choices]
        if unknown:
            raise click.UsageError(f"Unknown choice(s): {', '.join(unknown)}")
        if not selected:
            raise click.UsageError("Please select at least one item")
        return list(dict.fromkeys(selected))
    return convert


class ClickPrompter(Prompter):
    """Ask questions on the terminal with click."""

    def passphrase(self, message: str) -> str:
        return click.prompt(
            message,
            hide_input=True,
            value_proc=check_passphrase)

    def confirm(self, message: str, default: bool = True) -> bool:
        return click.confirm(message, default=default)

    def select(self, message: str, choices: typing.Sequence[str]) -> str:
        if len(choices) == 1:
            return choices[0]
        return click.prompt(
            message,
            type=click.Choice(list(choices)),
            show_choices=True)

    def select_many(
            self,
            message: str,
            choices: typing.Sequence[str]) -> typing.List[str]:
        for choice in choices:
            click.echo(f"  • {choice}")
        return click.prompt(
            f"{message} (comma separated, or 'all')",
            default='all',
            value_proc=parse_selection(choices))

    def text(
            self,
            message: str,
            validate: typing.Optional[Validator] = None,
            default: typing.Optional[str] = None) -> str:
        return click.prompt(message, default=default, value_proc=validate)


class NoPrompter(Prompter):
    """
    Answer confirmations with their defaults and refuse to ask anything else.

    Used with --no-input so that scripts and CI never block on stdin.
    """

    def refuse(self, message: str) -> typing.NoReturn:
        raise ConfigurationError(f"Input is disabled but envx needs an answer to: {message}")

    def passphrase(self, message: str) -> str:
        self.refuse(message)

    def confirm(self, message: str, default: bool = True) -> bool:
        return default

    def select(self, message: str, choices: typing.Sequence[str]) -> str:
        if len(choices) == 1:
            return choices[0]
        self.refuse(message)

    def select_many(
            self,
            message: str,
            choices: typing.Sequence[str]) -> typing.List[str]:
        self.refuse(message)

    def text(
            self,
            message: str,
            validate: typing.Optional[Validator] = None,
            default: typing.Optional[str] = None) -> str:
        if default is not None:
            return default
        self.refuse(message)
