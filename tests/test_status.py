import shutil

import git
import pytest

import envx
from envx.envrc import read_envrc


def test_version(invoke):
    assert invoke(['version']) == [f'envx {envx.__version__}', 'gpg: available']


def test_version_without_gpg(invoke, tmp_path):
    assert invoke(['--gpg', str(tmp_path / 'missing'), 'version'])[1] == 'gpg: not found'


def test_status(invoke, write):
    write('.env.production', 'A=1\n')
    write('.env.staging.gpg', 'encrypted')

    output = invoke(['status'])

    assert '✓ GPG: available' in output
    assert 'Total environments: 2' in output
    assert 'Encrypted: 1' in output
    assert 'Unencrypted: 1' in output
    assert '  • Encrypt production environment files for security' in output
    assert "  • Set up .envrc with 'envx interactive'" in output


def test_status_secure_project(invoke, write):
    write('.env.production.gpg', 'encrypted')
    write('.envrc', "export PRODUCTION_SECRET='x'\n")
    assert '✓ Your project follows security best practices!' in invoke(['status'])


def test_status_empty(invoke):
    assert '⚠ No environment files found.' in invoke(['status'])


def test_status_without_gpg(invoke_failing, tmp_path):
    output = invoke_failing(['--gpg', str(tmp_path / 'missing'), 'status'])
    assert 'GPG is required' in output


@pytest.mark.skipif(shutil.which('git') is None, reason="git is not installed")
def test_status_checks_gitignore(invoke, directory, write):
    git.Repo.init(directory)
    write('.gitignore', '.env.development\n')
    write('.env.development', 'A=1\n')
    write('.env.local', 'A=1\n')
    write('.envrc', '')

    output = invoke(['status'])

    assert '  • Add .env.local to .gitignore' in output
    assert '  • Add .envrc to .gitignore' in output
    assert '  • Add .env.development to .gitignore' not in output


def test_init(invoke):
    output = invoke(['--no-input', 'init'])
    assert '✓ GPG is available' in output
    assert "ℹ You can run the setup later with 'envx interactive'" in output


def test_init_existing_project(invoke, write):
    write('.env.production', 'A=1\n')
    output = invoke(['--no-input', 'init'])
    assert 'ℹ Initialization cancelled.' in output


def test_init_runs_setup(invoke, directory):
    invoke(['init'], input='y\ny\nproduction\nn\ngenerate\n32\ny\n')
    assert 'PRODUCTION_SECRET' in read_envrc(directory / '.envrc')
