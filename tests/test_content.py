from __future__ import annotations

from nostr_bridge.content import decode_attachment_url, prepare_content, strip_mentions


def test_clean_text_passes_through_unchanged():
    text = "just a normal message, with <angle> brackets & symbols"
    assert prepare_content(text, []) == text


def test_mentions_are_removed_without_placeholder():
    assert prepare_content("hello <@123456> and <#789> and <@&42>") == "hello  and  and "


def test_nickname_user_mention_is_removed():
    assert strip_mentions("hey <@!98765>!") == "hey !"


def test_non_numeric_markers_are_kept():
    # custom emoji and malformed markers are not mentions
    text = "<:wave:123> <@abc> <#> <@&>"
    assert strip_mentions(text) == text


def test_attachments_appended_in_order_after_stripping():
    out = prepare_content("look <@1>", ["https://cdn.example/a.png", "https://cdn.example/b.png"])
    assert out == "look \nhttps://cdn.example/a.png\nhttps://cdn.example/b.png"
    assert out.endswith("\nhttps://cdn.example/a.png\nhttps://cdn.example/b.png")


def test_escaped_ampersand_in_attachment_url_is_decoded():
    url = "https://cdn.example/f.png?ex=1\\u0026is=2\\u0026hm=3"
    assert decode_attachment_url(url) == "https://cdn.example/f.png?ex=1&is=2&hm=3"
    assert prepare_content("", [url]) == "\nhttps://cdn.example/f.png?ex=1&is=2&hm=3"


def test_escaped_ampersand_in_text_is_left_alone():
    assert prepare_content("a \\u0026 b") == "a \\u0026 b"


def test_none_text_with_attachment():
    assert prepare_content(None, ["https://x/y"]) == "\nhttps://x/y"
