from subconscious.streaming.records import RecordAccumulator, SSERecord, parse_field_line


def feed_all(lines: list[str]) -> list[SSERecord]:
    accumulator = RecordAccumulator()
    records = [r for line in lines if (r := accumulator.feed(line)) is not None]
    if (last := accumulator.finish()) is not None:
        records.append(last)
    return records


def test_parse_field_line_strips_one_leading_space() -> None:
    assert parse_field_line("data: value") == ("data", "value")
    assert parse_field_line("data:  two") == ("data", " two")
    assert parse_field_line("data:value") == ("data", "value")


def test_parse_field_line_keeps_colons_in_value() -> None:
    assert parse_field_line('data: {"a": 1}') == ("data", '{"a": 1}')


def test_parse_field_line_ignores_comments_and_blank_lines() -> None:
    assert parse_field_line(": keep-alive") is None
    assert parse_field_line("") is None


def test_parse_field_line_without_colon_names_empty_field() -> None:
    assert parse_field_line("data") == ("data", "")
    assert parse_field_line("whatever") == ("whatever", "")


def test_blank_line_closes_record_with_all_fields() -> None:
    records = feed_all(["event: meta", "id: 7", "retry: 1500", "data: {}", ""])

    assert records == [SSERecord(data="{}", event="meta", id="7", retry=1500)]


def test_record_without_data_is_discarded() -> None:
    records = feed_all(["event: ping", "id: 3", "", "data: x", ""])

    assert records == [SSERecord(data="x")]


def test_record_at_end_of_stream_without_blank_line_is_kept() -> None:
    records = feed_all(["data: last"])

    assert records == [SSERecord(data="last")]


def test_repeated_data_lines_are_joined() -> None:
    records = feed_all(["data: first", "data: second", ""])

    assert records == [SSERecord(data="first\nsecond")]


def test_comments_and_unknown_fields_do_not_affect_record() -> None:
    plain = feed_all(["event: e", "data: x", ""])
    noisy = feed_all([": hello", "event: e", "foo: bar", "data: x", "nocolon", ""])

    assert noisy == plain


def test_invalid_retry_is_ignored() -> None:
    records = feed_all(["retry: soon", "data: x", ""])

    assert records[0].retry is None


def test_last_event_name_wins() -> None:
    records = feed_all(["event: a", "event: b", "data: x", ""])

    assert records[0].event == "b"


def test_fields_reset_between_records() -> None:
    records = feed_all(["event: error", "data: a", "", "data: b", ""])

    assert [r.event for r in records] == ["error", None]
