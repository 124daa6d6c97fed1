"""Field-line grammar of the event stream and per-record accumulation."""

from subconscious.interface import Record


class SSERecord(Record):
    """A complete record, closed by a blank line or by the end of the stream."""

    data: str
    """Raw payload, not yet parsed; repeated `data` lines are joined with `\\n`."""

    event: str | None = None
    id: str | None = None
    retry: int | None = None


def parse_field_line(line: str) -> tuple[str, str] | None:
    """Split a non-blank line into `(field, value)`.

    Returns None for blank lines and comments. A line without a colon names a
    field with an empty value.
    """
    if not line or line.startswith(":"):
        return None
    name, sep, value = line.partition(":")
    if not sep:
        return line, ""
    if value.startswith(" "):
        value = value[1:]
    return name, value


class RecordAccumulator:
    """Folds lines into records.

    Holds the fields of the record in progress; `feed` returns a record
    each time a blank line closes one that carries `data`.
    """

    __slots__ = ("_event", "_data", "_id", "_retry")

    def __init__(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self._event: str | None = None
        self._data: list[str] | None = None
        self._id: str | None = None
        self._retry: int | None = None

    def feed(self, line: str) -> SSERecord | None:
        if line == "":
            return self._close()
        if (parsed := parse_field_line(line)) is None:
            return None
        name, value = parsed
        match name:
            case "event":
                self._event = value
            case "data":
                if self._data is None:
                    self._data = [value]
                else:
                    self._data.append(value)
            case "id":
                self._id = value
            case "retry":
                if value.isdecimal():
                    self._retry = int(value)
            case _:
                pass
        return None

    def finish(self) -> SSERecord | None:
        """Close the record in progress at the end of the stream."""
        return self._close()

    def _close(self) -> SSERecord | None:
        record = None
        if self._data is not None:
            record = SSERecord(
                data="\n".join(self._data),
                event=self._event,
                id=self._id,
                retry=self._retry,
            )
        self._reset()
        return record
