from subconscious.streaming.lines import LineBuffer


def test_push_returns_complete_lines_and_carries_partial() -> None:
    buffer = LineBuffer()

    assert buffer.push(b"data: one\nda") == ["data: one"]
    assert buffer.pending == "da"
    assert buffer.push(b"ta: two\n\n") == ["data: two", ""]
    assert buffer.pending == ""


def test_multibyte_character_split_across_chunks_is_preserved() -> None:
    encoded = "data: café ☃\n".encode()
    split_at = encoded.index(b"\xe2") + 1  # inside the snowman
    buffer = LineBuffer()

    first = buffer.push(encoded[:split_at])
    second = buffer.push(encoded[split_at:])

    assert first == []
    assert second == ["data: café ☃"]


def test_byte_at_a_time_matches_single_chunk() -> None:
    payload = "event: x\ndata: über\n\n: note\n".encode()
    whole = LineBuffer().push(payload)

    buffer = LineBuffer()
    pieces: list[str] = []
    for i in range(len(payload)):
        pieces.extend(buffer.push(payload[i : i + 1]))

    assert pieces == whole


def test_crlf_terminators_are_stripped() -> None:
    buffer = LineBuffer()

    assert buffer.push(b"data: x\r\n\r\n") == ["data: x", ""]


def test_flush_returns_unterminated_tail_once() -> None:
    buffer = LineBuffer()
    buffer.push(b"data: one\ndata: tail")

    assert buffer.flush() == "data: tail"
    assert buffer.flush() is None


def test_flush_without_tail_returns_none() -> None:
    buffer = LineBuffer()
    buffer.push(b"data: one\n")

    assert buffer.flush() is None


def test_truncated_multibyte_tail_is_replaced_not_raised() -> None:
    buffer = LineBuffer()
    buffer.push("data: ☃".encode()[:-1])

    assert buffer.flush() == "data: \ufffd"
