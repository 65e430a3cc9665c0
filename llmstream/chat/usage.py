"""Token usage reported by providers"""

from dataclasses import dataclass


@dataclass(frozen=True)
class UsageMetadata:
    """Token accounting for one completed model invocation"""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_counts(
        cls,
        prompt_tokens: int | None,
        completion_tokens: int | None,
        total_tokens: int | None = None,
    ) -> "UsageMetadata":
        """Build from vendor counts, deriving the total when it is missing"""
        prompt = int(prompt_tokens or 0)
        completion = int(completion_tokens or 0)
        total = int(total_tokens) if total_tokens is not None else prompt + completion
        return cls(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)
