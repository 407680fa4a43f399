from hitman.services.games.codes import (
    GAME_CODE_ALPHABET,
    generate_auth_token,
    generate_game_code,
    generate_secret_code,
    is_well_formed_token,
    normalise_game_code,
    normalise_secret_code,
)


def test_game_code_uses_alphabet_and_length():
    code = generate_game_code(lambda c: False, length=6)
    assert len(code) == 6
    assert all(ch in GAME_CODE_ALPHABET for ch in code)
    assert 'O' not in GAME_CODE_ALPHABET and '0' not in GAME_CODE_ALPHABET


def test_game_code_retries_on_collision():
    taken = []

    def is_taken(code):
        # First two candidates collide
        taken.append(code)
        return len(taken) <= 2

    code = generate_game_code(is_taken)
    assert len(taken) == 3
    assert code == taken[-1]


def test_secrets_and_tokens_are_unique_and_well_formed():
    secrets_seen = {generate_secret_code() for _ in range(200)}
    tokens_seen = {generate_auth_token() for _ in range(200)}
    assert len(secrets_seen) == 200
    assert len(tokens_seen) == 200
    assert all(normalise_secret_code(s) == s for s in secrets_seen)
    assert all(is_well_formed_token(t) for t in tokens_seen)


def test_secret_normalisation():
    secret = generate_secret_code()
    dashed = f'{secret[:8]}-{secret[8:12]}-{secret[12:16]}-{secret[16:20]}-{secret[20:]}'
    assert normalise_secret_code(dashed.upper()) == secret
    assert normalise_secret_code('  ' + secret + '\n') == secret
    assert normalise_secret_code('not-a-secret') is None
    assert normalise_secret_code('') is None
    assert normalise_secret_code(None) is None


def test_malformed_tokens_rejected():
    assert not is_well_formed_token(None)
    assert not is_well_formed_token('')
    assert not is_well_formed_token('short')
    assert not is_well_formed_token('x' * 42 + '!')


def test_game_code_normalisation():
    assert normalise_game_code(' ab1c ') == 'AB1C'
    assert normalise_game_code(None) == ''
