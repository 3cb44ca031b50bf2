import pytest

from envx.gpg import GPG
from envx.utils import PreconditionError, ToolInvocationError


def test_round_trip(gpg, write):
    plaintext = write('.env.production', 'SECRET_KEY=abc\n')
    ciphertext = plaintext.with_name('.env.production.gpg')

    gpg.encrypt(plaintext, ciphertext, 'correct horse')

    assert ciphertext.read_bytes() != plaintext.read_bytes()
    assert gpg.read(ciphertext, 'correct horse') == b'SECRET_KEY=abc\n'


def test_decrypt_to_file(gpg, directory, encrypted):
    ciphertext = encrypted('.env.staging', 'A=1\n', 'pass')
    gpg.decrypt(ciphertext, directory / '.env.staging', 'pass')
    assert (directory / '.env.staging').read_text() == 'A=1\n'


def test_wrong_passphrase(gpg, encrypted):
    ciphertext = encrypted('.env.staging', 'A=1\n', 'pass')

    with pytest.raises(ToolInvocationError) as error:
        gpg.read(ciphertext, 'wrong')

    assert 'exited with status 2' in error.value.format_message()
    assert 'Bad session key' in error.value.stderr


def test_passphrase_is_not_an_argument():
    command = GPG().command(['--decrypt', 'file.gpg'])
    assert command[:6] == ('gpg', '--batch', '--yes', '--pinentry-mode', 'loopback', '--passphrase-fd')
    assert command[-2:] == ('--decrypt', 'file.gpg')


def test_verbose_command():
    assert '--verbose' in GPG(verbose=True).command([])
    assert '--quiet' in GPG().command([])


def test_home_sets_gnupghome(tmp_path):
    assert GPG().environ() is None
    assert GPG(home=tmp_path).environ()['GNUPGHOME'] == tmp_path.as_posix()


def test_missing_binary(tmp_path):
    gpg = GPG(binary=str(tmp_path / 'missing-gpg'))
    assert not gpg.is_available()

    with pytest.raises(PreconditionError):
        gpg.read(tmp_path / 'file.gpg', 'pass')


def test_is_available(gpg):
    assert gpg.is_available()


def test_self_test(gpg):
    gpg.self_test('correct horse')


def test_self_test_failure(gpg):
    with pytest.raises(ToolInvocationError):
        gpg.self_test('')


def test_read_returns_raw_bytes(gpg, write):
    plaintext = write('.env.production', '')
    plaintext.write_bytes(b'NAME=caf\xe9\r\n')
    ciphertext = plaintext.with_name('.env.production.gpg')

    gpg.encrypt(plaintext, ciphertext, 'pass')

    assert gpg.read(ciphertext, 'pass') == b'NAME=caf\xe9\r\n'
