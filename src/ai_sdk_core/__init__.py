from . import openai, ai_sdk_ui

# Re-export core types for convenient access
from .core.messages import (
    Message,
    Part,
    TextPart,
    ReasoningPart,
    RedactedReasoningPart,
    FilePart,
    ToolCallPart,
    ToolResultPart,
    make_messages,
)
from .core.chunks import (
    Chunk,
    FinishReason,
    Usage,
    Source,
    GeneratedFile,
    CallWarning,
    TextDeltaChunk,
    ReasoningChunk,
    ReasoningSignatureChunk,
    RedactedReasoningChunk,
    SourceChunk,
    FileChunk,
    ToolCallStreamingStartChunk,
    ToolCallDeltaChunk,
    ToolCallChunk,
    ToolResultChunk,
    ResponseMetadataChunk,
    StepStartChunk,
    StepFinishChunk,
    FinishChunk,
    ErrorChunk,
    ObjectChunk,
)
from .core.errors import (
    AISDKError,
    APICallError,
    RetryError,
    AbortError,
    InvalidArgumentError,
    InvalidPromptError,
    UnsupportedFunctionalityError,
    JSONParseError,
    TypeValidationError,
    NoObjectGeneratedError,
    NoOutputSpecifiedError,
    NoSuchToolError,
    InvalidToolArgumentsError,
    ToolExecutionError,
    ToolCallRepairError,
)
from .core.llm import (
    LanguageModel,
    CallOptions,
    GenerateResult,
    ModelStream,
    ResponseFormat,
    ToolDefinition,
)
from .core.tools import Tool, ToolExecutionOptions, tool
from .core.schema import Schema, ValidationResult
from .core.settings import CallSettings
from .core.ids import create_id_generator, generate_id
from .core.retry import retry_with_exponential_backoff
from .core.json_repair import fix_json, repair_json, parse_partial_json, safe_parse_json
from .core.streams import DelayedFuture, StitchableStream
from .core.telemetry import Tracer, Span, NoopTracer
from .core.step import StepResult
from .core.tool_calls import ToolCallRepairContext
from .core.output import Output, text_output, object_output
from .core.smooth import smooth_stream
from .core.generate_text import GenerateTextResult, generate_text
from .core.stream_text import StreamTextResult, stream_text
from .core.generate_object import GenerateObjectResult, generate_object
from .core.stream_object import StreamObjectFinishEvent, StreamObjectResult, stream_object

__all__ = [
    # Messages
    "Message",
    "Part",
    "TextPart",
    "ReasoningPart",
    "RedactedReasoningPart",
    "FilePart",
    "ToolCallPart",
    "ToolResultPart",
    "make_messages",
    # Chunks
    "Chunk",
    "FinishReason",
    "Usage",
    "Source",
    "GeneratedFile",
    "CallWarning",
    "TextDeltaChunk",
    "ReasoningChunk",
    "ReasoningSignatureChunk",
    "RedactedReasoningChunk",
    "SourceChunk",
    "FileChunk",
    "ToolCallStreamingStartChunk",
    "ToolCallDeltaChunk",
    "ToolCallChunk",
    "ToolResultChunk",
    "ResponseMetadataChunk",
    "StepStartChunk",
    "StepFinishChunk",
    "FinishChunk",
    "ErrorChunk",
    "ObjectChunk",
    # Errors
    "AISDKError",
    "APICallError",
    "RetryError",
    "AbortError",
    "InvalidArgumentError",
    "InvalidPromptError",
    "UnsupportedFunctionalityError",
    "JSONParseError",
    "TypeValidationError",
    "NoObjectGeneratedError",
    "NoOutputSpecifiedError",
    "NoSuchToolError",
    "InvalidToolArgumentsError",
    "ToolExecutionError",
    "ToolCallRepairError",
    # Model interface
    "LanguageModel",
    "CallOptions",
    "GenerateResult",
    "ModelStream",
    "ResponseFormat",
    "ToolDefinition",
    # Tools
    "Tool",
    "ToolExecutionOptions",
    "ToolCallRepairContext",
    "tool",
    # Utilities
    "Schema",
    "ValidationResult",
    "CallSettings",
    "create_id_generator",
    "generate_id",
    "retry_with_exponential_backoff",
    "fix_json",
    "repair_json",
    "parse_partial_json",
    "safe_parse_json",
    "DelayedFuture",
    "StitchableStream",
    "Tracer",
    "Span",
    "NoopTracer",
    "smooth_stream",
    # Generation
    "StepResult",
    "Output",
    "text_output",
    "object_output",
    "GenerateTextResult",
    "generate_text",
    "StreamTextResult",
    "stream_text",
    "GenerateObjectResult",
    "generate_object",
    "StreamObjectFinishEvent",
    "StreamObjectResult",
    "stream_object",
    # Submodules
    "openai",
    "ai_sdk_ui",
]
