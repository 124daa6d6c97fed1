import codecs


class LineBuffer:
    """Reassembles newline-terminated text lines from raw byte chunks.

    Bytes are decoded incrementally so a multi-byte character split across
    two chunks is never corrupted. The text after the last `\\n` is carried
    over and prefixed to the next chunk.
    """

    __slots__ = ("_decoder", "_partial")

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._partial = ""

    def push(self, chunk: bytes) -> list[str]:
        text = self._decoder.decode(chunk)
        if not text:
            return []
        *lines, self._partial = (self._partial + text).split("\n")
        return [_strip_cr(line) for line in lines]

    def flush(self) -> str | None:
        """Return the unterminated trailing line, if any, and reset."""
        rest = self._partial + self._decoder.decode(b"", final=True)
        self._partial = ""
        self._decoder.reset()
        if not rest:
            return None
        # a truncated trailing sequence decodes to U+FFFD, never to "\n"
        return _strip_cr(rest)

    @property
    def pending(self) -> str:
        return self._partial


def _strip_cr(line: str) -> str:
    return line[:-1] if line.endswith("\r") else line
