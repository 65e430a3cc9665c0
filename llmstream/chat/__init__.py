from .message import (
    Role,
    Message,
    ToolCall,
    FunctionCall,
    is_valid_role,
    parse_tool_arguments,
)
from .tool import Tool, ToolFunction, ToolChoice
from .usage import UsageMetadata

__all__ = [
    "Role",
    "Message",
    "ToolCall",
    "FunctionCall",
    "is_valid_role",
    "parse_tool_arguments",
    "Tool",
    "ToolFunction",
    "ToolChoice",
    "UsageMetadata",
]
