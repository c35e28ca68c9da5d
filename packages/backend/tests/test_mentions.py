"""Mention parsing tests."""

from mochat.mentions import extract_mentions, is_mention_all, is_mentioned


def test_bare_mention():
    assert extract_mentions("@u2 please review") == ["u2"]


def test_all_three_forms_in_order():
    text = "hey <@agent-7>, cc @[Ada Lovelace] and @bob"
    assert extract_mentions(text) == ["agent-7", "Ada Lovelace", "bob"]


def test_duplicates_collapse_to_first_occurrence():
    assert extract_mentions("@bob @alice <@bob> @[alice]") == ["bob", "alice"]


def test_no_mentions_or_empty_input():
    assert extract_mentions("no one here") == []
    assert extract_mentions("") == []
    assert extract_mentions(None) == []


def test_malformed_tokens_are_ignored():
    # Unclosed bracket/angle forms fall back to nothing or to the bare form
    assert extract_mentions("@[unclosed") == []
    assert extract_mentions("<@>") == []
    assert extract_mentions("email me at a@") == []


def test_mention_all_variants_case_insensitive():
    for text in ("@all hands", "ping @Everyone", "@CHANNEL", "@here now"):
        assert is_mention_all(text), text


def test_mention_all_is_word_bounded():
    assert not is_mention_all("@allison can you look")
    assert not is_mention_all("@hereford")
    assert not is_mention_all("all hands, no at-sign")
    assert not is_mention_all(None)


def test_is_mentioned():
    assert is_mentioned("thanks @u3", "u3")
    assert not is_mentioned("thanks @u3", "u2")
