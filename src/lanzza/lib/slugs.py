import unicodedata

import regex

_MARKS = regex.compile(r"\p{M}+")
_NON_WORD = regex.compile(r"[^\p{L}\p{N}]+")


def slugify(text: str, max_length: int = 48) -> str:
    """
    Turns a free-form title ("Loja de Café Orgânico") into a url-safe slug
    ("loja-de-cafe-organico"). Falls back to "chat" when nothing usable remains.
    """
    decomposed = unicodedata.normalize("NFKD", text)
    without_marks = _MARKS.sub("", decomposed)
    slug = _NON_WORD.sub("-", without_marks.lower()).strip("-")
    return slug[:max_length].rstrip("-") or "chat"
