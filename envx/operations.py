"""
Encrypt, decrypt and copy the files belonging to one environment.

Each operation returns a Result instead of raising for per-file failures, so
the same functions serve single environments and --all batches. Files that
would be overwritten are backed up first and restored if gpg fails.
"""

import logging
import pathlib
import shutil
import typing

import attr

from .batch import Result
from .files import EnvFile, backed_up
from .report import env, path
from .utils import PreconditionError, ToolInvocationError
from .workspace import Workspace

log = logging.getLogger(__name__)

TARGET = '.env'


@attr.s(frozen=True, kw_only=True)
class Options:
    passphrase: typing.Optional[str] = attr.ib(default=None, repr=False)
    secret: typing.Optional[str] = attr.ib(default=None)
    interactive: bool = attr.ib(default=False)
    overwrite: bool = attr.ib(default=False)
    batch: bool = attr.ib(default=False)


def select_files(
        ws: Workspace,
        files: typing.Sequence[EnvFile],
        options: Options,
        verb: str) -> typing.List[EnvFile]:
    """Let the user pick files when --interactive is used outside a batch."""
    if not options.interactive or options.batch or len(files) < 2:
        return list(files)
    by_name = {ws.rel(f.path): f for f in files}
    selected = ws.prompter.select_many(f"Select files to {verb}", list(by_name))
    return [by_name[name] for name in selected]


def encrypt_file(ws: Workspace, env_file: EnvFile, passphrase: str) -> bool:
    """
    Encrypt a plaintext file into its '.gpg' counterpart.

    Returns False without touching the encrypted file if it already holds the
    same content as the plaintext.
    """
    ciphertext = env_file.ciphertext

    if ciphertext.exists():
        try:
            unchanged = ws.gpg.read(ciphertext, passphrase) == env_file.read_plaintext()
        except ToolInvocationError:
            ws.reporter.warning("Could not decrypt existing file - creating new encrypted version")
        else:
            if unchanged:
                ws.reporter.success("File already encrypted with same content - skipping")
                return False
            ws.reporter.warning("File has changes - updating encrypted version")

    with backed_up(ciphertext):
        ws.gpg.encrypt(env_file.plaintext, ciphertext, passphrase)

    ws.reporter.success(f"Encrypted {path(ws.rel(env_file.plaintext))} "
                        f"to {path(ws.rel(ciphertext))}")
    return True


def decrypt_file(ws: Workspace, env_file: EnvFile, passphrase: str) -> None:
    plaintext = env_file.plaintext

    backup = None
    try:
        with backed_up(plaintext) as backup:
            if backup is not None:
                ws.reporter.info(f"Created backup {path(ws.rel(backup))}")
            ws.gpg.decrypt(env_file.ciphertext, plaintext, passphrase)
    except ToolInvocationError:
        if backup is not None:
            ws.reporter.info("Restored original file from backup")
        raise

    ws.reporter.success(f"Decrypted {path(ws.rel(env_file.ciphertext))} "
                        f"to {path(ws.rel(plaintext))}")


def process_files(
        ws: Workspace,
        files: typing.Sequence[EnvFile],
        action: typing.Callable[[EnvFile], typing.Optional[bool]]) -> Result:
    """
    Run an action on each file, collecting failures instead of stopping.

    An action returning False skipped its file without failing.
    """
    processed = skipped = 0
    errors = []

    for env_file in files:
        ws.reporter.info(f"Processing {path(ws.rel(env_file.path))}")
        try:
            if action(env_file) is False:
                skipped += 1
            else:
                processed += 1
        except (ToolInvocationError, OSError) as error:
            message = str(error)
            ws.reporter.error(f"Error processing {ws.rel(env_file.path)}: {message}")
            errors.append(f"{ws.rel(env_file.path)}: {message}")

    if errors:
        return Result.failed('; '.join(errors), files_processed=processed + skipped)
    return Result.ok(files_processed=processed + skipped, files_skipped=skipped)


def encrypt_environment(ws: Workspace, environment: str, options: Options) -> Result:
    files = [f for f in ws.env_files(environment) if not f.encrypted]
    if not files:
        return Result.failed(f"No unencrypted .env.{environment} files found to encrypt")

    ws.reporter.info(f"Found {len(files)} file(s) to encrypt for {env(environment)}")
    if not options.batch:
        for env_file in files:
            ws.reporter.bullet(path(ws.rel(env_file.path)))

    files = select_files(ws, files, options, 'encrypt')
    if not files:
        ws.reporter.info("No files selected for encryption.")
        return Result.ok()

    if not options.batch and not options.interactive:
        if not ws.prompter.confirm(f"Encrypt {len(files)} file(s) for {environment}?"):
            return Result.failed("Operation cancelled by user")

    passphrase = ws.passphrase(environment, options.passphrase, options.secret)
    ws.gpg.self_test(passphrase)

    return process_files(ws, files, lambda f: encrypt_file(ws, f, passphrase))


def decrypt_environment(ws: Workspace, environment: str, options: Options) -> Result:
    files = [f for f in ws.env_files(environment) if f.encrypted]
    if not files:
        return Result.failed(f"No encrypted .env.{environment}.gpg files found to decrypt")

    ws.reporter.info(f"Found {len(files)} encrypted file(s) to decrypt for {env(environment)}")
    if not options.batch:
        for env_file in files:
            ws.reporter.bullet(path(ws.rel(env_file.path)))

    files = select_files(ws, files, options, 'decrypt')
    if not files:
        ws.reporter.info("No files selected for decryption.")
        return Result.ok()

    conflicts = [f.plaintext for f in files if f.plaintext.exists()]
    if conflicts and not options.overwrite:
        ws.reporter.warning("The following files already exist and will be overwritten:")
        for conflict in conflicts:
            ws.reporter.bullet(path(ws.rel(conflict)))
        if not ws.prompter.confirm("Continue and overwrite existing files?", default=False):
            return Result.failed("Existing files were not overwritten (use --overwrite)")
    elif not options.batch and not options.interactive:
        if not ws.prompter.confirm(f"Decrypt {len(files)} file(s) for {environment}?"):
            return Result.failed("Operation cancelled by user")

    passphrase = ws.passphrase(environment, options.passphrase, options.secret, purpose='decryption')
    ws.gpg.self_test(passphrase)

    return process_files(ws, files, lambda f: decrypt_file(ws, f, passphrase))


def copy_source(files: typing.Sequence[EnvFile]) -> typing.Optional[EnvFile]:
    """Prefer the plaintext file, falling back to the encrypted one."""
    plaintext = [f for f in files if not f.encrypted]
    encrypted = [f for f in files if f.encrypted]
    return (plaintext or encrypted or [None])[0]


def copy_environment(
        ws: Workspace,
        environment: str,
        directory: pathlib.Path,
        options: Options) -> Result:
    """Copy an environment's file to '.env' in a directory, decrypting it if needed."""
    source = copy_source(ws.env_files(environment, directory, recursive=False))
    if source is None:
        return Result.failed(f"No files found for environment '{environment}'")

    target = directory / TARGET
    ws.reporter.info(f"Copying {path(ws.rel(source.path))} to {path(ws.rel(target))}")

    if target.exists() and not options.overwrite:
        ws.reporter.warning(f"Target {ws.rel(target)} already exists")
        if not ws.prompter.confirm(f"Overwrite {ws.rel(target)}?", default=False):
            return Result.failed(f"Target {ws.rel(target)} already exists (use --overwrite)")

    if not source.encrypted:
        with backed_up(target):
            shutil.copyfile(source.path, target)
        ws.reporter.success(f"Copied to {path(ws.rel(target))}")
        return Result.ok(files_processed=1)

    if not ws.gpg.is_available():
        raise PreconditionError("GPG is not available. Please install GPG to decrypt files.")

    passphrase = ws.passphrase(
        environment, options.passphrase, options.secret,
        directory=directory, purpose='decryption')
    ws.gpg.self_test(passphrase)

    backup = None
    try:
        with backed_up(target) as backup:
            ws.gpg.decrypt(source.path, target, passphrase)
    except ToolInvocationError as error:
        if backup is not None:
            ws.reporter.info(f"Restored original {ws.rel(target)} from backup")
        return Result.failed(f"Failed to decrypt: {error.format_message()}")

    ws.reporter.success(f"Decrypted and copied to {path(ws.rel(target))}")
    return Result.ok(files_processed=1)
