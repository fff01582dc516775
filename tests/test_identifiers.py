from app.services.identifiers import (
    SESSION_CODE_ALPHABET,
    new_opaque_id,
    new_session_code,
    normalize_code,
)


def test_session_code_shape():
    for _ in range(200):
        code = new_session_code()
        assert len(code) == 5
        assert set(code) <= set(SESSION_CODE_ALPHABET)
    assert not set("0O1I") & set(SESSION_CODE_ALPHABET)
    assert len(SESSION_CODE_ALPHABET) >= 32


def test_session_code_retries_on_collision():
    seen = []

    def taken(code):
        seen.append(code)
        return len(seen) < 4

    code = new_session_code(taken)
    assert len(seen) == 4
    assert code == seen[-1]


def test_opaque_ids_are_long_and_distinct():
    ids = {new_opaque_id() for _ in range(500)}
    assert len(ids) == 500
    # 24 octets en base64 url-safe -> 32 caractères
    assert all(len(i) == 32 for i in ids)


def test_normalize_code():
    assert normalize_code("  qr8lm ") == "QR8LM"
    assert normalize_code(None) == ""
