"""Tool declarations and tool choice"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ToolChoice(str, Enum):
    """Controls whether the model may, must, or must not call a tool"""
    AUTO = "auto"
    NONE = "none"
    REQUIRED = "required"


@dataclass(frozen=True)
class ToolFunction:
    """Function signature; parameters is a JSON Schema object"""
    name: str
    description: str = ""
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Tool:
    """A function the assistant is allowed to call"""
    function: ToolFunction
    type: str = "function"

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "function": {
                "name": self.function.name,
                "description": self.function.description,
                "parameters": self.function.parameters,
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Tool":
        function = data.get("function") or {}
        return cls(
            type=data.get("type", "function"),
            function=ToolFunction(
                name=function.get("name", ""),
                description=function.get("description", ""),
                parameters=function.get("parameters") or {},
            ),
        )
