import pytest

from aquascope.permissions import InvalidPermissionError, parse_perms


def parse(s):
    return list(parse_perms(s))


def test_parse_perms():
    assert parse("Hello @Perm{read} world") == [
        ((6, 17), '<span class="perm read">R</span>')
    ]
    assert parse("Hello @Perm[lost]{read} world") == [
        (
            (6, 23),
            '<span class="perm-diff-sub-container"><div class="perm-diff-sub"></div>'
            '<span class="perm read">R</span></span>',
        )
    ]


def test_parse_perms_fail():
    with pytest.raises(InvalidPermissionError, match="not-a-perm"):
        parse("@Perm{not-a-perm}")


def test_gained_option():
    assert parse("@Perm[gained]{write}") == [
        (
            (0, 20),
            '<span><span class="perm-diff-add">+</span>'
            '<span class="perm write">W</span></span>',
        )
    ]


def test_missing_option():
    ((_, html),) = parse("@Perm[missing]{own}")
    assert html == '<span class="perm missing own">O</span>'


def test_unknown_option_rejected():
    with pytest.raises(InvalidPermissionError):
        parse("@Perm[other]{read}")


def test_multiple_markers_spans_cover_markers():
    content = "a @Perm{read} b @Perm{flow} c"
    results = parse(content)
    assert [content[s:e] for (s, e), _ in results] == ["@Perm{read}", "@Perm{flow}"]
    assert results[1][1] == '<span class="perm flow">F</span>'


def test_no_markers():
    assert parse("plain text with @Per{read}") == []