"""Canonical chat message model shared by every provider"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from llmstream.errors import InvalidArgumentError

logger = logging.getLogger(__name__)


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


_ROLES = {r.value for r in Role}


def is_valid_role(role: str) -> bool:
    """Check whether role is one of user, assistant, system or tool"""
    if isinstance(role, Role):
        return True
    return isinstance(role, str) and role in _ROLES


@dataclass(frozen=True)
class FunctionCall:
    """Function name and its JSON-encoded arguments"""
    name: str
    arguments: str = "{}"


@dataclass(frozen=True)
class ToolCall:
    """A request from the assistant to call a declared tool"""
    id: str
    function: FunctionCall
    type: str = "function"

    def parsed_arguments(self) -> dict[str, Any]:
        """Decode the arguments, falling back to an empty object"""
        return parse_tool_arguments(self.function.arguments)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "function": {
                "name": self.function.name,
                "arguments": self.function.arguments,
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ToolCall":
        function = data.get("function") or {}
        arguments = function.get("arguments", "{}")
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments)
        return cls(
            id=data.get("id", ""),
            type=data.get("type", "function"),
            function=FunctionCall(name=function.get("name", ""), arguments=arguments),
        )


def parse_tool_arguments(arguments: str | None) -> dict[str, Any]:
    """Parse tool call arguments; malformed or non-object JSON becomes {}"""
    if not arguments:
        return {}
    try:
        value = json.loads(arguments)
    except (json.JSONDecodeError, TypeError):
        logger.debug(f"Could not decode tool arguments: {arguments!r}")
        return {}
    if not isinstance(value, dict):
        logger.debug(f"Tool arguments are not a JSON object: {arguments!r}")
        return {}
    return value


@dataclass(frozen=True)
class Message:
    """A single role-tagged chat message"""
    role: Role
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = field(default_factory=tuple)
    tool_call_id: str | None = None

    def __post_init__(self):
        if not is_valid_role(self.role):
            raise InvalidArgumentError(f"Invalid message role: {self.role!r}")
        # Normalize so providers can compare against Role members
        object.__setattr__(self, "role", Role(self.role))
        object.__setattr__(self, "tool_calls", tuple(self.tool_calls or ()))
        if self.role == Role.TOOL and not self.tool_call_id:
            raise InvalidArgumentError("Tool messages require a tool_call_id")

    def to_dict(self) -> dict:
        """Convert to the JSON shape used on the HTTP API"""
        result = {
            "role": self.role.value,
            "content": self.content,
        }
        if self.tool_calls:
            result["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id:
            result["tool_call_id"] = self.tool_call_id
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        return cls(
            role=data.get("role", ""),
            content=data.get("content") or "",
            tool_calls=tuple(ToolCall.from_dict(tc) for tc in data.get("tool_calls") or ()),
            tool_call_id=data.get("tool_call_id"),
        )
