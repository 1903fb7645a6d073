from board.utils.forum_content import format_count, render_post_content


def test_format_count():
    assert format_count(999) == "999"
    assert format_count(1000) == "1K"
    assert format_count(1300) == "1.3K"
    assert format_count(2_500_000) == "2.5M"


def test_markup_is_escaped_before_formatting():
    out = render_post_content("<script>alert('x')</script> **bold** and *soft*")
    assert "<script>" not in out
    assert "&lt;script&gt;" in out
    assert "&#039;x&#039;" in out
    assert "<strong>bold</strong>" in out
    assert "<em>soft</em>" in out


def test_links_and_newlines():
    out = render_post_content("see https://example.com/a?b=1\nbye")
    assert '<a href="https://example.com/a?b=1" target="_blank" rel="noopener noreferrer">' in out
    assert out.endswith("<br>bye")


def test_quote_block():
    out = render_post_content("> quoted line\nmy answer")
    assert out.startswith("<blockquote")
    assert "quoted line<br>" in out
    assert "</blockquote>" in out
    assert out.endswith("my answer")
