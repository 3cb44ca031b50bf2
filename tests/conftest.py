import os
import pathlib
import stat
import sys
import typing

import attr
import click.testing
import pytest

import envx.cli
from envx.gpg import GPG
from envx.prompts import NoPrompter, Prompter
from envx.report import Reporter
from envx.workspace import Workspace

# A stand-in for gpg that understands the handful of arguments envx passes.
# "Ciphertext" is the base64 plaintext behind a header holding a hash of the
# passphrase and a random nonce, so encrypting twice never gives the same bytes.
FAKE_GPG = r'''
import argparse
import base64
import hashlib
import os
import sys

parser = argparse.ArgumentParser(add_help=False)
parser.add_argument('--version', action='store_true')
parser.add_argument('--output')
parser.add_argument('--symmetric')
parser.add_argument('--decrypt')
args, _ = parser.parse_known_args()


def fail(message):
    sys.stderr.write('gpg: ' + message + '\n')
    sys.exit(2)


def read(path):
    try:
        with open(path, 'rb') as f:
            return f.read()
    except OSError as error:
        fail("can't open '" + path + "': " + error.strerror)


def write(path, data):
    with open(path, 'wb') as f:
        f.write(data)


if args.version:
    print('gpg (GnuPG) 2.4.0-fake')
    sys.exit(0)

passphrase = sys.stdin.readline().rstrip('\n')
if not passphrase:
    fail('no passphrase given')
key = hashlib.sha256(passphrase.encode()).hexdigest().encode()

if args.symmetric:
    data = read(args.symmetric)
    nonce = os.urandom(8).hex().encode()
    write(args.output or args.symmetric + '.gpg',
          b'FAKEGPG ' + key + b' ' + nonce + b'\n' + base64.b64encode(data) + b'\n')
    sys.exit(0)

if args.decrypt:
    header, _, body = read(args.decrypt).partition(b'\n')
    if args.output:
        # Real gpg may leave a truncated output file behind when it fails.
        write(args.output, b'')
    parts = header.split(b' ')
    if len(parts) != 3 or parts[0] != b'FAKEGPG':
        fail('no valid OpenPGP data found.')
    if parts[1] != key:
        fail('decryption failed: Bad session key')
    data = base64.b64decode(body)
    if args.output:
        write(args.output, data)
    else:
        sys.stdout.buffer.write(data)
    sys.exit(0)

fail('unsupported arguments')
'''


@pytest.fixture(scope='session')
def fake_gpg(tmp_path_factory) -> pathlib.Path:
    path = tmp_path_factory.mktemp('bin') / 'gpg'
    path.write_text(f'#!{sys.executable}\n{FAKE_GPG}')
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture()
def gpg(fake_gpg) -> GPG:
    return GPG(binary=str(fake_gpg))


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for key in list(os.environ):
        if key.endswith('_SECRET') or key.startswith('ENVX_'):
            monkeypatch.delenv(key)


@pytest.fixture()
def directory(tmp_path) -> pathlib.Path:
    path = tmp_path / 'project'
    path.mkdir()
    return path


@attr.s
class ScriptedPrompter(Prompter):
    """Answers questions from a list, recording what was asked."""
    answers: typing.List[typing.Any] = attr.ib(factory=list)
    asked: typing.List[str] = attr.ib(factory=list)

    def answer(self, message: str):
        self.asked.append(message)
        if not self.answers:
            raise AssertionError(f"Unexpected question: {message}")
        return self.answers.pop(0)

    def passphrase(self, message):
        return self.answer(message)

    def confirm(self, message, default=True):
        return self.answer(message)

    def select(self, message, choices):
        return self.answer(message)

    def select_many(self, message, choices):
        return self.answer(message)

    def text(self, message, validate=None, default=None):
        return self.answer(message)


@pytest.fixture()
def workspace(directory, gpg) -> Workspace:
    return Workspace(
        directory=directory,
        gpg=gpg,
        reporter=Reporter(),
        prompter=NoPrompter())


@pytest.fixture()
def write(directory):
    def write_func(name: str, text: str) -> pathlib.Path:
        path = directory / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
        return path

    return write_func


@pytest.fixture()
def encrypted(directory, gpg):
    """Create only the '.gpg' file for a plaintext, as if checked out from git."""
    def encrypted_func(name: str, text: str, passphrase: str) -> pathlib.Path:
        plaintext = directory / name
        plaintext.parent.mkdir(parents=True, exist_ok=True)
        plaintext.write_text(text)
        ciphertext = plaintext.with_name(plaintext.name + '.gpg')
        gpg.encrypt(plaintext, ciphertext, passphrase)
        plaintext.unlink()
        return ciphertext

    return encrypted_func


@pytest.fixture()
def run(directory, fake_gpg):
    def run_func(arguments: typing.Sequence[str], input: typing.Optional[str] = None):
        assert all(isinstance(arg, str) for arg in arguments)
        runner = click.testing.CliRunner()
        return runner.invoke(
            envx.cli.main,
            ['--cwd', str(directory), '--gpg', str(fake_gpg), *arguments],
            input=input)

    return run_func


@pytest.fixture()
def invoke(run):
    def invoke_func(arguments: typing.Sequence[str], input: typing.Optional[str] = None):
        result = run(arguments, input=input)
        if result.exit_code != 0:
            message = f"Command envx {' '.join(arguments)} failed:\n{result.output}"
            raise Exception(message) from result.exception
        return result.output.splitlines()

    return invoke_func


@pytest.fixture()
def invoke_failing(run):
    def invoke_func(arguments: typing.Sequence[str], input: typing.Optional[str] = None) -> str:
        result = run(arguments, input=input)
        assert result.exit_code != 0, result.output
        return result.output

    return invoke_func


@pytest.fixture()
def scripted_workspace(workspace) -> Workspace:
    return attr.evolve(workspace, prompter=ScriptedPrompter())
