import os.path
import pathlib
import re
import typing

import click
import git

ENVIRONMENT_NAME = re.compile(r'^[A-Za-z][A-Za-z0-9_-]*$')


def find_git_directory(
        path: typing.Optional[pathlib.Path] = None) -> typing.Optional[pathlib.Path]:
    try:
        repo = git.Repo(path, search_parent_directories=True)
    except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
        return None
    return pathlib.Path(repo.working_dir)


def not_ignored_by_git(
        directory: pathlib.Path,
        paths: typing.Iterable[pathlib.Path]) -> typing.List[str]:
    """
    List the paths that git would not ignore, relative to the repository.

    Returns an empty list when the directory isn't inside a git repository.
    """
    working_dir = find_git_directory(directory)
    if working_dir is None:
        return []

    working_dir = working_dir.resolve()
    candidates = sorted(relative_path(p.resolve(), working_dir) for p in paths)
    if not candidates:
        return []

    ignored = set(git.Repo(working_dir).ignored(*candidates))
    return [candidate for candidate in candidates if candidate not in ignored]


def is_valid_environment_name(name: str) -> bool:
    """Names start with a letter and contain letters, digits, '-' and '_'."""
    return bool(ENVIRONMENT_NAME.match(name))


def normalize_environment_name(name: str) -> str:
    name = name.strip().lower()
    if not is_valid_environment_name(name):
        raise ConfigurationError(
            f"Invalid environment name '{name}': names must start with a letter "
            f"and can only contain letters, numbers, hyphens, and underscores")
    return name


def relative_path(path: pathlib.Path, directory: pathlib.Path) -> str:
    """
    Convert a path to a path relative to a directory.

    Returns a string as these should only be used for presentation.
    """
    return os.path.relpath(path.as_posix(), directory.as_posix())


class EnvxException(click.ClickException):
    pass


class ConfigurationError(EnvxException):
    """Conflicting flags, missing arguments or invalid names."""


class PreconditionError(EnvxException):
    """The gpg binary is unavailable or there is nothing to work on."""


class ToolInvocationError(EnvxException):
    def __init__(self, message: str, stderr: str = '') -> None:
        super().__init__(message)
        self.stderr = stderr
