from .decoder import RunStream as RunStream
from .decoder import StreamDecoder as StreamDecoder
from .lines import LineBuffer as LineBuffer
from .protocols import DeltaProtocol as DeltaProtocol
from .protocols import ProtocolName as ProtocolName
from .protocols import RichProtocol as RichProtocol
from .protocols import StreamProtocol as StreamProtocol
from .protocols import build_protocol as build_protocol
from .records import RecordAccumulator as RecordAccumulator
from .records import SSERecord as SSERecord
from .records import parse_field_line as parse_field_line
from .source import HttpxByteSource as HttpxByteSource
from .source import IByteSource as IByteSource
