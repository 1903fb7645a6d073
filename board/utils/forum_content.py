# board/utils/forum_content.py
import html
import re

BOLD_RE = re.compile(r"\*\*(.+?)\*\*")
ITALIC_RE = re.compile(r"\*(.+?)\*")
URL_RE = re.compile(r"(https?://[^\s<]+)")
QUOTE_PREFIX_RE = re.compile(r"^&gt;\s?")

QUOTE_OPEN = '<blockquote style="border-left: 3px solid #ccc; padding-left: 10px; margin: 8px 0; color: #666;">'


def format_count(count: int) -> str:
    """1300 -> '1.3K', 2_500_000 -> '2.5M'."""
    for limit, suffix in ((1_000_000, "M"), (1_000, "K")):
        if count >= limit:
            short = f"{count / limit:.1f}"
            if short.endswith(".0"):
                short = short[:-2]
            return short + suffix
    return str(count)


def render_post_content(text: str) -> str:
    """
    Turn stored post text into display HTML:
      - everything is HTML-escaped first
      - **bold** and *italic*
      - bare http(s) URLs become links
      - lines starting with "> " become a blockquote
      - remaining newlines become <br>
    """
    out = html.escape(text or "", quote=True).replace("&#x27;", "&#039;")

    # bold before italic so ** isn't eaten as two *
    out = BOLD_RE.sub(r"<strong>\1</strong>", out)
    out = ITALIC_RE.sub(r"<em>\1</em>", out)
    out = URL_RE.sub(r'<a href="\1" target="_blank" rel="noopener noreferrer">\1</a>', out)

    lines = []
    in_quote = False
    for line in out.split("\n"):
        if line.startswith("&gt; ") or line == "&gt;":
            if not in_quote:
                lines.append(QUOTE_OPEN)
                in_quote = True
            lines.append(QUOTE_PREFIX_RE.sub("", line, count=1) + "<br>")
        else:
            if in_quote:
                lines.append("</blockquote>")
                in_quote = False
            lines.append(line)
    if in_quote:
        lines.append("</blockquote>")

    return "\n".join(lines).replace("\n", "<br>")
