_MAX_CHUNK = 3500


def split_message(text: str, max_len: int = _MAX_CHUNK) -> list[str]:
    """Split text on paragraph boundaries, falling back to line/sentence/hard split."""
    if len(text) <= max_len:
        return [text]

    chunks: list[str] = []
    while text:
        if len(text) <= max_len:
            chunks.append(text)
            break

        for sep, keep in (("\n\n", 0), ("\n", 0), (". ", 1), (" ", 0)):
            cut = text.rfind(sep, 0, max_len)
            if cut > 0:
                chunks.append(text[: cut + keep])
                text = text[cut + len(sep):]
                break
        else:
            chunks.append(text[:max_len])
            text = text[max_len:]

    return chunks
