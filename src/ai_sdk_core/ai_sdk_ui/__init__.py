from .adapter import (
    # Chunk stream → wire conversion
    to_data_stream,
    to_ui_message_stream,
    to_sse_stream,
    format_sse,
    serialize_part,
    SSE_DONE,
)
from .protocol import (
    # Data stream protocol
    DataStreamPart,
    DataStreamPartName,
    DATA_STREAM_PART_CODES,
    format_data_stream_part,
    parse_data_stream_part,
    # Headers for streaming responses
    DATA_STREAM_HEADERS,
    UI_MESSAGE_STREAM_HEADERS,
)

__all__ = [
    "to_data_stream",
    "to_ui_message_stream",
    "to_sse_stream",
    "format_sse",
    "serialize_part",
    "SSE_DONE",
    "DataStreamPart",
    "DataStreamPartName",
    "DATA_STREAM_PART_CODES",
    "format_data_stream_part",
    "parse_data_stream_part",
    "DATA_STREAM_HEADERS",
    "UI_MESSAGE_STREAM_HEADERS",
]
