from retailhub.utils.token_crypto import (
    TOKEN_PREFIX,
    parse_token,
    build_token_string,
    hash_secret,
    verify_secret,
    generate_token,
    generate_hex_token,
)


def test_parse_token_and_build_roundtrip():
    tid = "abc123def4567890"
    secret = "s3cr3t_part_with_underscores"
    token = build_token_string(tid, secret)
    parsed = parse_token(token)
    assert parsed and parsed.token_id == tid and parsed.secret == secret

    assert parse_token("") is None
    assert parse_token("notvalid") is None
    assert parse_token(TOKEN_PREFIX + "nounderscore") is None
    assert parse_token(TOKEN_PREFIX + "_secretonly") is None


def test_hash_and_verify_secret_argon2():
    secret = "topsecret"
    h = hash_secret(secret)
    assert h.startswith("$argon2id$")
    assert verify_secret(secret, h) is True
    assert verify_secret("wrong", h) is False


def test_verify_secret_rejects_empty_and_garbage():
    assert verify_secret("", "whatever") is False
    assert verify_secret("secret", None) is False
    assert verify_secret("secret", "not-an-argon2-hash") is False


def test_generate_token_shape():
    tid, sec, token = generate_token()
    assert token == f"{TOKEN_PREFIX}{tid}_{sec}"
    assert len(tid) == 16 and "_" not in tid
    assert parse_token(token).secret == sec


def test_generate_hex_token_length():
    assert len(generate_hex_token(16)) == 32
    assert generate_hex_token() != generate_hex_token()
