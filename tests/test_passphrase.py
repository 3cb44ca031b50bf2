import pytest

from envx.passphrase import Source, resolve

SECRETS = {
    'PRODUCTION_SECRET': 'from-convention',
    'SHARED_SECRET': 'from-custom',
}


def test_provided_passphrase_wins():
    resolution = resolve('production', passphrase='explicit', secret='SHARED_SECRET', secrets=SECRETS)
    assert resolution.source is Source.PROVIDED
    assert resolution.value == 'explicit'


def test_custom_secret_beats_convention():
    resolution = resolve('production', secret='SHARED_SECRET', secrets=SECRETS)
    assert resolution.source is Source.CUSTOM
    assert resolution.value == 'from-custom'
    assert resolution.variable == 'SHARED_SECRET'


def test_convention_secret():
    resolution = resolve('Production', secrets=SECRETS)
    assert resolution.source is Source.CONVENTION
    assert resolution.value == 'from-convention'
    assert resolution.variable == 'PRODUCTION_SECRET'


def test_missing_custom_secret_falls_back_to_convention():
    resolution = resolve('production', secret='MISSING_SECRET', secrets=SECRETS)
    assert resolution.source is Source.CONVENTION


@pytest.mark.parametrize('passphrase', [None, '', '   '])
def test_blank_passphrase_is_ignored(passphrase):
    assert resolve('production', passphrase=passphrase, secrets=SECRETS).source is Source.CONVENTION


def test_prompt_when_nothing_is_set():
    resolution = resolve('staging', secrets=SECRETS)
    assert resolution.needs_prompt
    assert resolution.value is None
    assert resolution.variable == 'STAGING_SECRET'


def test_empty_secret_values_are_ignored():
    assert resolve('staging', secrets={'STAGING_SECRET': ''}).needs_prompt
