import re

from envx.envrc import read_envrc


def test_generate(invoke, directory, write):
    write('.env.production', 'A=1\n')
    write('.env.staging', 'A=1\n')

    invoke(['--no-input', 'interactive', '--generate'])

    secrets = read_envrc(directory / '.envrc')
    assert sorted(secrets) == ['PRODUCTION_SECRET', 'STAGING_SECRET']
    assert re.match(r'^[a-f0-9]{64}$', secrets['PRODUCTION_SECRET'])


def test_generate_keeps_existing_secrets(invoke, directory, write):
    write('.env.production', 'A=1\n')
    write('.envrc', "use nix\nexport PRODUCTION_SECRET='keep'\n")

    output = '\n'.join(invoke(['--no-input', 'interactive', '--generate']))

    assert 'No secrets to set.' in output
    assert (directory / '.envrc').read_text() == "use nix\nexport PRODUCTION_SECRET='keep'\n"


def test_generate_overwrite(invoke, directory, write):
    write('.env.production', 'A=1\n')
    write('.envrc', "use nix\nexport PRODUCTION_SECRET='keep'\n")

    invoke(['--no-input', 'interactive', '--generate', '--overwrite'])

    assert read_envrc(directory / '.envrc')['PRODUCTION_SECRET'] != 'keep'
    assert (directory / '.envrc').read_text().startswith('use nix\n')


def test_generate_without_environments(invoke_failing):
    output = invoke_failing(['--no-input', 'interactive', '--generate'])
    assert 'No environment files found to generate secrets for' in output


def test_enter_secret(invoke, directory, write, gpg):
    write('.env.production', 'A=1\n')

    invoke(['interactive'], input='y\nall\nn\nenter\nhunter22\ny\n')
    assert read_envrc(directory / '.envrc') == {'PRODUCTION_SECRET': 'hunter22'}

    invoke(['--no-input', 'encrypt', '-e', 'production'])
    assert gpg.read(directory / '.env.production.gpg', 'hunter22') == b'A=1\n'


def test_generate_secret_with_length(invoke, directory, write):
    write('.env.production', 'A=1\n')
    invoke(['interactive'], input='y\nall\nn\ngenerate\n16\ny\n')
    assert re.match(r'^[a-f0-9]{32}$', read_envrc(directory / '.envrc')['PRODUCTION_SECRET'])


def test_new_environment_secret(invoke, directory):
    invoke(['interactive'], input='y\nreview\nn\ngenerate\n32\ny\n')
    assert 'REVIEW_SECRET' in read_envrc(directory / '.envrc')


def test_cancel_setup(invoke, directory, write):
    write('.env.production', 'A=1\n')
    output = '\n'.join(invoke(['interactive'], input='y\nall\nn\ngenerate\n32\nn\n'))
    assert 'Setup cancelled.' in output
    assert not (directory / '.envrc').exists()


def test_nothing_selected(invoke_failing):
    assert 'No environments selected' in invoke_failing(['interactive'], input='n\n')
