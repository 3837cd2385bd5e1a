"""
Plain-prose builders for synthetic article pages.
"""

SENTENCE = (
    "The committee reviewed the evidence carefully, and its members agreed that the findings "
    "deserved a wider audience than the original report had reached. "
)


def prose(length: int) -> str:
    """Sentences totalling about ``length`` characters, ending in a period."""
    text = ""
    while len(text) < length:
        text += SENTENCE
    return text[: length - 1].rstrip() + "."


def paragraphs(total_length: int, per_paragraph: int = 400) -> str:
    """``<p>`` blocks whose text adds up to roughly ``total_length`` characters."""
    chunks = []
    remaining = total_length
    while remaining > 0:
        size = min(per_paragraph, remaining)
        chunks.append(f"<p>{prose(size)}</p>")
        remaining -= size
    return "\n".join(chunks)
