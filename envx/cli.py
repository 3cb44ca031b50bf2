import logging
import pathlib
import typing

import attr
import click

from . import __doc__, __version__
from .batch import BatchSummary, Result, run_batch
from .envrc import (
    SECRETS_FILE, generate_secret, read_envrc, secret_environment_name,
    secret_variable_name, stored_secrets, write_envrc)
from .files import create_env_file, group_by_directory
from .gpg import GPG
from .operations import (
    Options, copy_environment, decrypt_environment, encrypt_environment)
from .prompts import ClickPrompter, NoPrompter, check_environment_name
from .report import Reporter, env, path
from .utils import (
    ConfigurationError, EnvxException, PreconditionError,
    normalize_environment_name, not_ignored_by_git)
from .workspace import Workspace

log = logging.getLogger(__name__)

COMMON_ENVIRONMENTS = ('development', 'staging', 'production', 'local', 'test')
COMMON_TEMPLATES = ('.env.example', '.env.template', '.env.sample')
SENSITIVE_ENVIRONMENTS = ('production', 'staging')


class PathType(click.Path):
    def convert(self, value, param, ctx):
        return pathlib.Path(super().convert(value, param, ctx))


def environment_callback(ctx, param, value: typing.Optional[str]) -> typing.Optional[str]:
    return normalize_environment_name(value) if value else None


environment_option = click.option(
    '-e', '--environment',
    metavar='ENV',
    callback=environment_callback,
    help="Environment name (e.g. development, staging, production).")

passphrase_option = click.option(
    '-p', '--passphrase',
    envvar='ENVX_PASSPHRASE',
    help="Passphrase to use instead of a stored secret.")

secret_option = click.option(
    '-s', '--secret',
    metavar='NAME',
    help="Variable in the secrets file (or environment) holding the passphrase.")

interactive_option = click.option(
    '-i', '--interactive',
    default=False,
    is_flag=True,
    help="Choose which files to process.")


def all_option(help: str):
    return click.option(
        '-a', '--all', 'process_all',
        default=False,
        is_flag=True,
        help=help)


def overwrite_option(help: str):
    return click.option(
        '--overwrite',
        default=False,
        is_flag=True,
        help=help)


@click.group(help=__doc__)
@click.option(
    '-c', '--cwd', 'directory',
    type=PathType(
        file_okay=False,
        dir_okay=True,
        exists=True),
    envvar='ENVX_CWD',
    default='.',
    help="Directory containing the environment files. Defaults to the current directory.")
@click.option(
    '--gpg', 'gpg_binary',
    envvar='ENVX_GPG',
    default='gpg',
    show_default=True,
    help="The gpg binary to run.")
@click.option(
    '--gpg-home',
    type=PathType(file_okay=False, dir_okay=True),
    envvar='ENVX_GPG_HOME',
    default=None,
    help="Run gpg with this GNUPGHOME.")
@click.option(
    '--secrets-file',
    envvar='ENVX_SECRETS_FILE',
    default=SECRETS_FILE,
    show_default=True,
    help="File in the working directory holding <ENV>_SECRET passphrases.")
@click.option(
    '--no-input',
    default=False,
    is_flag=True,
    envvar='ENVX_NO_INPUT',
    help="Never prompt. Confirmations use their defaults and missing input is an error.")
@click.option(
    '-q', '--quiet',
    default=False,
    is_flag=True,
    help="Only display errors.")
@click.option(
    '-d', '--debug', 'debug',
    default=False,
    is_flag=True,
    help="Enable debug logging.")
@click.option(
    '-v', '--verbose', 'gpg_verbose',
    default=False,
    is_flag=True,
    help="Run gpg with --verbose.")
@click.pass_context
def main(
        ctx,
        directory: pathlib.Path,
        gpg_binary: str,
        gpg_home: typing.Optional[pathlib.Path],
        secrets_file: str,
        no_input: bool,
        quiet: bool,
        debug: bool,
        gpg_verbose: bool):
    logging.basicConfig(level=(logging.DEBUG if debug else logging.WARNING))
    log.debug(f"Working in {directory}")
    ctx.obj = Workspace(
        directory=directory,
        gpg=GPG(binary=gpg_binary, verbose=gpg_verbose, home=gpg_home),
        reporter=Reporter(quiet=quiet),
        prompter=NoPrompter() if no_input else ClickPrompter(),
        secrets_file=secrets_file)


def check_all_flag(
        process_all: bool,
        environment: typing.Optional[str],
        interactive: bool) -> None:
    if process_all and environment:
        raise ConfigurationError("Cannot use --all with --environment flag")
    if process_all and interactive:
        raise ConfigurationError("Interactive mode is not compatible with --all flag")


def available_environments(ws: Workspace) -> typing.List[str]:
    environments = ws.environments()
    if not environments:
        raise PreconditionError(
            f"No environment files found in {ws.directory}. "
            f"Use the 'create' command to create environment files first.")
    return environments


def choose_environment(
        ws: Workspace,
        environment: typing.Optional[str],
        available: typing.Sequence[str],
        verb: str) -> str:
    if environment:
        if environment not in available:
            raise ConfigurationError(
                f"Environment '{environment}' not found. "
                f"Available: {', '.join(available)}")
        return environment

    if len(available) == 1:
        ws.reporter.info(f"Using environment: {env(available[0])}")
        return available[0]

    return ws.prompter.select(f"Select environment to {verb}", available)


def finish(result: Result) -> None:
    if not result.success:
        raise EnvxException(result.error)


def finish_batch(summary: BatchSummary, noun: str = 'environment(s)') -> None:
    if not summary.overall_success:
        raise EnvxException(
            f"{summary.failed} of {summary.total} {noun} failed")


def process(
        ws: Workspace,
        operation: typing.Callable[[Workspace, str, Options], Result],
        environment: typing.Optional[str],
        process_all: bool,
        options: Options,
        verb: str,
        past: str) -> None:
    """Run an encrypt or decrypt operation on one environment or all of them."""
    available = available_environments(ws)

    if not process_all:
        environment = choose_environment(ws, environment, available, verb)
        finish(operation(ws, environment, options))
        return

    ws.reporter.info(
        f"Processing {len(available)} environment(s): {', '.join(env(e) for e in available)}")
    batch_options = attr.evolve(options, batch=True)
    summary = run_batch(
        available,
        lambda name: operation(ws, name, batch_options),
        reporter=ws.reporter,
        label=lambda name: f"environment {env(name)}")
    ws.reporter.summary(summary, past)
    finish_batch(summary)


@main.command()
@click.pass_obj
def version(ws: Workspace):
    """Show the application version."""
    click.echo(f"envx {__version__}")
    available = ws.gpg.is_available()
    status = click.style('available', fg='green') if available else click.style('not found', fg='red')
    click.echo(f"gpg: {status}")


@main.command(name='list')
@click.pass_obj
def list_environments(ws: Workspace):
    """List all environment files and their status."""
    ws.reporter.header('Environment Files')
    environments = ws.environments()

    if not environments:
        ws.reporter.warning("No environment files found in the current directory.")
        ws.reporter.info("To get started, run 'envx create -i'")
        return

    rows = []
    for name in environments:
        for env_file in ws.env_files(name):
            rows.append([
                env(name),
                path(ws.rel(env_file.path)),
                '.gpg' if env_file.encrypted else '.env',
                click.style('Encrypted', fg='green') if env_file.encrypted
                else click.style('Unencrypted', fg='yellow'),
            ])
    ws.reporter.table(['Environment', 'File Path', 'Type', 'Status'], rows)

    ws.reporter.echo()
    present = ws.secrets_path.is_file()
    ws.reporter.info(
        f"Secrets file ({ws.secrets_file}): "
        f"{click.style('Present', fg='green') if present else click.style('Not found', fg='yellow')}")


main.add_command(list_environments, name='ls')


@main.command()
@click.pass_obj
def status(ws: Workspace):
    """Show the encryption status of the project and recommendations."""
    ws.reporter.header('Project Status')

    ws.reporter.subheader('Prerequisites')
    if not ws.gpg.is_available():
        ws.reporter.error("GPG: not found")
        raise PreconditionError("GPG is required. Install gnupg and try again.")
    ws.reporter.success("GPG: available")

    environments = ws.environments()
    if not environments:
        ws.reporter.warning("No environment files found.")
        ws.reporter.info("Run 'envx init' or 'envx create' to get started")
        return

    recommendations = []
    plaintext = []
    encrypted = 0
    for name in environments:
        files = ws.env_files(name)
        unencrypted = [f.path for f in files if not f.encrypted]
        encrypted += len(files) - len(unencrypted)
        plaintext.extend(unencrypted)
        if unencrypted and name in SENSITIVE_ENVIRONMENTS:
            recommendations.append(f"Encrypt {name} environment files for security")

    ws.reporter.subheader('Environment Summary')
    ws.reporter.echo(f"Total environments: {len(environments)}")
    ws.reporter.echo(f"Total files: {encrypted + len(plaintext)}")
    ws.reporter.echo(f"Encrypted: {encrypted}")
    ws.reporter.echo(f"Unencrypted: {len(plaintext)}")

    ws.reporter.echo()
    if ws.secrets_path.is_file():
        ws.reporter.success(f"Secrets file ({ws.secrets_file}): present")
        plaintext.append(ws.secrets_path)
    else:
        ws.reporter.warning(f"Secrets file ({ws.secrets_file}): missing")
        recommendations.append(f"Set up {ws.secrets_file} with 'envx interactive'")

    for unignored in not_ignored_by_git(ws.directory, plaintext):
        recommendations.append(f"Add {unignored} to .gitignore")

    if recommendations:
        ws.reporter.subheader('Recommendations')
        for recommendation in recommendations:
            ws.reporter.bullet(recommendation, fg='yellow')
    else:
        ws.reporter.echo()
        ws.reporter.success("Your project follows security best practices!")


def show_quick_start(ws: Workspace) -> None:
    ws.reporter.header('Envx Quick Start')
    steps = [
        ("Create environment files:", "envx create -i"),
        ("Set up secrets for encryption:", "envx interactive"),
        ("Encrypt your environment files:", "envx encrypt -e production"),
        ("Commit encrypted files to git:", "git add .env.*.gpg"),
        ("Decrypt when needed:", "envx decrypt -e production"),
    ]
    for number, (description, command) in enumerate(steps, start=1):
        ws.reporter.echo(f"{number}. {description}", bold=True)
        ws.reporter.echo(f"   {command}", fg='cyan')


@main.command()
@click.pass_context
def init(ctx):
    """Check prerequisites and walk through setting up a project."""
    ws: Workspace = ctx.obj
    ws.reporter.header('Welcome to Envx')
    ws.reporter.info(f"Initializing envx in {ws.directory}")

    existing = ws.environments()
    if existing or ws.secrets_path.is_file():
        ws.reporter.warning("Envx appears to already be set up in this project.")
        if existing:
            ws.reporter.info(f"Found environments: {', '.join(env(e) for e in existing)}")
        if not ws.prompter.confirm("Do you want to continue with initialization anyway?", default=False):
            ws.reporter.info("Initialization cancelled.")
            return

    ws.require_gpg()
    ws.reporter.success("GPG is available")
    show_quick_start(ws)

    if ws.prompter.confirm("Would you like to start the interactive setup now?", default=False):
        ctx.invoke(interactive)
    else:
        ws.reporter.info("You can run the setup later with 'envx interactive'")


def resolve_template(
        ws: Workspace,
        template: typing.Optional[str]) -> typing.Optional[pathlib.Path]:
    if not template:
        return None
    template_path = ws.directory / template
    if not template_path.is_file():
        raise ConfigurationError(f"Template file not found: {template}")
    return template_path


def create_one(
        ws: Workspace,
        environment: str,
        template: typing.Optional[pathlib.Path],
        overwrite: bool) -> Result:
    target = ws.directory / f'.env.{environment}'
    if target.exists() and not overwrite:
        if not ws.prompter.confirm(f"File {ws.rel(target)} already exists. Overwrite?", default=False):
            ws.reporter.warning(f"Skipped existing file {ws.rel(target)}")
            return Result.ok(files_skipped=1)

    create_env_file(target, environment, template)
    ws.reporter.success(f"Created {path(ws.rel(target))}")
    return Result.ok(files_processed=1)


def choose_new_environments(ws: Workspace, existing: typing.Sequence[str]) -> typing.List[str]:
    names: typing.List[str] = []

    suggestions = [name for name in COMMON_ENVIRONMENTS if name not in existing]
    if suggestions and ws.prompter.confirm("Do you want to select from suggested environments?"):
        names.extend(ws.prompter.select_many("Select environments to create", suggestions))

    while ws.prompter.confirm("Do you want to add a custom environment?", default=not names):
        name = ws.prompter.text("Environment name", validate=check_environment_name)
        if name in names:
            ws.reporter.warning(f"Environment {env(name)} is already in the list")
        elif name in existing and not ws.prompter.confirm(
                f"Environment {name} already exists. Create its file anyway?", default=False):
            continue
        else:
            names.append(name)
            ws.reporter.success(f"Added {env(name)} to the list")

    return names


def choose_template(ws: Workspace) -> typing.Optional[pathlib.Path]:
    if not ws.prompter.confirm("Do you want to use a template file?", default=False):
        return None

    found = [name for name in COMMON_TEMPLATES if (ws.directory / name).is_file()]
    other = 'other'
    choice = ws.prompter.select("Select template file", [*found, other]) if found else other
    if choice == other:
        choice = ws.prompter.text("Template file path")

    try:
        return resolve_template(ws, choice)
    except ConfigurationError as error:
        ws.reporter.warning(error.format_message())
        return None


@main.command()
@environment_option
@click.option(
    '-t', '--template',
    metavar='PATH',
    help="File to copy as the starting point, relative to the working directory.")
@click.option(
    '-i', '--interactive',
    default=False,
    is_flag=True,
    help="Create several environments, choosing from common names.")
@overwrite_option("Overwrite existing files without confirmation.")
@click.pass_obj
def create(
        ws: Workspace,
        environment: typing.Optional[str],
        template: typing.Optional[str],
        interactive: bool,
        overwrite: bool):
    """Create new environment files."""
    ws.reporter.header('Environment File Creation')
    existing = ws.environments()
    if existing:
        ws.reporter.info(f"Existing environments: {', '.join(env(e) for e in existing)}")

    template_path = resolve_template(ws, template)

    if not interactive:
        if not environment:
            environment = ws.prompter.text("Environment name", validate=check_environment_name)
        finish(create_one(ws, environment, template_path, overwrite))
        ws.reporter.info(f"Next: add your variables, then run 'envx encrypt -e {environment}'")
        return

    names = sorted(choose_new_environments(ws, existing))
    if not names:
        ws.reporter.warning("No environments selected for creation.")
        return

    if template_path is None:
        template_path = choose_template(ws)

    ws.reporter.subheader('Creation Summary')
    for name in names:
        ws.reporter.bullet(f".env.{env(name)}")
    if not ws.prompter.confirm("Create these environment files?"):
        ws.reporter.info("Operation cancelled.")
        return

    summary = run_batch(
        names,
        lambda name: create_one(ws, name, template_path, overwrite),
        reporter=ws.reporter,
        label=lambda name: f".env.{name}")
    ws.reporter.summary(summary, 'Created')
    finish_batch(summary)


@main.command()
@environment_option
@passphrase_option
@secret_option
@interactive_option
@all_option("Encrypt every environment in the working directory.")
@click.pass_obj
def encrypt(
        ws: Workspace,
        environment: typing.Optional[str],
        passphrase: typing.Optional[str],
        secret: typing.Optional[str],
        interactive: bool,
        process_all: bool):
    """
    Encrypt .env.<environment> files into .env.<environment>.gpg.

    Files whose encrypted version already has the same content are skipped.
    """
    ws.reporter.header('Environment File Encryption')
    check_all_flag(process_all, environment, interactive)
    ws.require_gpg()

    options = Options(passphrase=passphrase, secret=secret, interactive=interactive)
    process(ws, encrypt_environment, environment, process_all, options, 'encrypt', 'Encrypted')

    ws.reporter.echo()
    ws.reporter.info("Next steps:")
    ws.reporter.bullet("Add the .gpg files to version control", fg='bright_black')
    ws.reporter.bullet("Keep the plaintext .env.* files out of git", fg='bright_black')


@main.command()
@environment_option
@passphrase_option
@secret_option
@interactive_option
@all_option("Decrypt every environment in the working directory.")
@overwrite_option("Overwrite existing decrypted files without confirmation.")
@click.pass_obj
def decrypt(
        ws: Workspace,
        environment: typing.Optional[str],
        passphrase: typing.Optional[str],
        secret: typing.Optional[str],
        interactive: bool,
        process_all: bool,
        overwrite: bool):
    """
    Decrypt .env.<environment>.gpg files into .env.<environment>.

    Existing plaintext files are backed up first and restored if decryption fails.
    """
    ws.reporter.header('Environment File Decryption')
    check_all_flag(process_all, environment, interactive)
    ws.require_gpg()

    options = Options(
        passphrase=passphrase, secret=secret,
        interactive=interactive, overwrite=overwrite)
    process(ws, decrypt_environment, environment, process_all, options, 'decrypt', 'Decrypted')

    ws.reporter.echo()
    ws.reporter.warning("Decrypted files contain sensitive information. Never commit them.")


@main.command()
@environment_option
@passphrase_option
@secret_option
@all_option(
    "Copy the environment into '.env' in every directory that has files for it. "
    "Requires --environment, as this iterates directories rather than environments.")
@overwrite_option("Overwrite existing .env files without confirmation.")
@click.pass_obj
def copy(
        ws: Workspace,
        environment: typing.Optional[str],
        passphrase: typing.Optional[str],
        secret: typing.Optional[str],
        process_all: bool,
        overwrite: bool):
    """Copy an environment's file to .env, decrypting it if needed."""
    ws.reporter.header('Environment File Copy')
    if process_all and not environment:
        raise ConfigurationError(
            "The --all flag requires an environment to be specified with -e/--environment")

    options = Options(passphrase=passphrase, secret=secret, overwrite=overwrite)

    if not process_all:
        environment = choose_environment(ws, environment, available_environments(ws), 'copy to .env')
        finish(copy_environment(ws, environment, ws.directory, options))
    else:
        directories = [ws.rel(d) for d in group_by_directory(ws.env_files(environment))]
        if not directories:
            raise PreconditionError(f"No {environment} files found in {ws.directory}")

        ws.reporter.info(f"Found {env(environment)} files in {len(directories)} directories:")
        for directory in directories:
            ws.reporter.bullet(path(directory))

        batch_options = attr.evolve(options, batch=True)
        summary = run_batch(
            directories,
            lambda name: copy_environment(ws, environment, ws.directory / name, batch_options),
            reporter=ws.reporter,
            label=lambda name: f"directory {path(name)}")
        ws.reporter.summary(summary, 'Copied', noun='directory', nouns='directories')
        finish_batch(summary, noun='directories')

    if environment in SENSITIVE_ENVIRONMENTS:
        ws.reporter.warning(
            f"You are using {environment} variables locally. Never commit .env files.")


def choose_secret_environments(
        ws: Workspace,
        existing: typing.Sequence[str]) -> typing.List[str]:
    names: typing.List[str] = []

    if existing and ws.prompter.confirm("Set up secrets for the existing environments?"):
        names.extend(ws.prompter.select_many("Select environments", existing))

    while ws.prompter.confirm(
            "Do you want to add secrets for another environment?", default=not names):
        name = ws.prompter.text("Environment name", validate=check_environment_name)
        if name not in names:
            names.append(name)

    if not names:
        raise ConfigurationError("No environments selected for secrets setup")
    return names


def ask_secret(ws: Workspace, environment: str) -> str:
    how = ws.prompter.select(
        f"How would you like to set the secret for {environment}?",
        ['generate', 'enter'])
    if how == 'generate':
        length = ws.prompter.select("Secret length in bytes", ['32', '64', '16'])
        return generate_secret(int(length))
    return ws.prompter.passphrase(f"Enter secret for {environment}")


@main.command()
@overwrite_option("Replace secrets that are already set without confirmation.")
@click.option(
    '--generate',
    default=False,
    is_flag=True,
    help="Generate random secrets for every environment without asking.")
@click.pass_obj
def interactive(ws: Workspace, overwrite: bool, generate: bool):
    """Store a passphrase for each environment in the secrets file."""
    ws.reporter.header('Interactive Secrets Setup')
    existing = ws.environments()
    current = read_envrc(ws.secrets_path)

    if ws.secrets_path.is_file():
        ws.reporter.info(f"Found existing secrets file {path(ws.secrets_file)}")
        for variable in stored_secrets(current):
            ws.reporter.bullet(f"{env(secret_environment_name(variable))}: {path(variable)}")

    if generate:
        if not existing:
            raise PreconditionError("No environment files found to generate secrets for")
        environments = list(existing)
    else:
        environments = choose_secret_environments(ws, existing)

    already = [name for name in environments if secret_variable_name(name) in current]
    if already and not overwrite:
        ws.reporter.warning(f"Secrets already exist for: {', '.join(env(n) for n in already)}")
        if not ws.prompter.confirm("Replace the existing secrets?", default=False):
            environments = [name for name in environments if name not in already]

    if not environments:
        ws.reporter.info("No secrets to set.")
        return

    values = {}
    for name in sorted(environments):
        variable = secret_variable_name(name)
        values[variable] = generate_secret() if generate else ask_secret(ws, name)
        ws.reporter.success(f"Secret configured for {env(name)} as {path(variable)}")

    ws.reporter.subheader('Summary')
    ws.reporter.table(
        ['Environment', 'Variable Name', 'Status'],
        [[env(secret_environment_name(v)), path(v), click.style('✓ Set', fg='green')] for v in values])

    if not generate and not ws.prompter.confirm(f"Write these secrets to {ws.secrets_file}?"):
        ws.reporter.info("Setup cancelled.")
        return

    write_envrc(ws.secrets_path, values)
    ws.reporter.success(f"Saved {len(values)} secret(s) to {path(ws.secrets_file)}")
    ws.reporter.echo()
    ws.reporter.info("You can now run envx without a passphrase, for example:")
    for variable in values:
        ws.reporter.bullet(f"envx encrypt -e {secret_environment_name(variable)}", fg='cyan')
    ws.reporter.warning(f"Never commit {ws.secrets_file}; add it to .gitignore.")
