"""Hook payload and event models."""

import json
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sessionlog.errors import HookInputError


class HookEvent(str, Enum):
    """Lifecycle events the host can report."""

    SESSION_START = "session_start"
    PROMPT = "prompt"
    RESPONSE = "response"
    SESSION_END = "session_end"
    PRE_COMPACT = "pre_compact"
    PERMISSION_REQUEST = "permission_request"
    SUBAGENT_START = "subagent_start"
    SUBAGENT_STOP = "subagent_stop"
    # Diagnostic only, nothing persisted to the session log
    PRE_TOOL_USE = "pre_tool_use"
    POST_TOOL_USE = "post_tool_use"
    NOTIFICATION = "notification"


SUBAGENT_EVENTS = {HookEvent.SUBAGENT_START, HookEvent.SUBAGENT_STOP}


class HookPayload(BaseModel):
    """JSON object the host writes to stdin for every hook invocation."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    cwd: str = Field(min_length=1, description="Session working directory")
    session_id: str = Field(min_length=1, description="Opaque session identifier")
    transcript_path: str | None = Field(default=None, description="Host JSONL transcript")
    prompt: str | None = Field(default=None, description="Submitted user prompt")
    permission_mode: str | None = Field(default=None, description="Host permission mode label")

    # permission_request
    tool_name: str | None = None
    tool_input: dict | None = None
    description: str | None = None
    file_path: str | None = None

    # subagent_start / subagent_stop
    agent_id: str | None = None
    agent_type: str | None = Field(default=None, alias="subagent_type")
    agent_transcript_path: str | None = None

    @property
    def tool_description(self) -> str | None:
        """Description from the payload or the tool input."""
        if self.description:
            return self.description
        if self.tool_input:
            value = self.tool_input.get("description") or self.tool_input.get("command")
            return value if isinstance(value, str) else None
        return None

    @property
    def tool_file_path(self) -> str | None:
        if self.file_path:
            return self.file_path
        if self.tool_input:
            value = self.tool_input.get("file_path") or self.tool_input.get("notebook_path")
            return value if isinstance(value, str) else None
        return None


def parse_payload(raw: str, event: HookEvent) -> HookPayload:
    """Validate the stdin payload for an event.

    Raises:
        HookInputError: Empty or non-JSON input, non-object JSON, or a
            required field missing.
    """
    if not raw or not raw.strip():
        raise HookInputError("No hook payload on stdin")

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise HookInputError(f"Hook payload is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise HookInputError("Hook payload must be a JSON object")

    try:
        payload = HookPayload.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
        raise HookInputError(f"Invalid hook payload ({fields or 'unknown field'})") from e

    if event in SUBAGENT_EVENTS and not payload.agent_id:
        raise HookInputError(f"{event.value} requires agent_id")

    return payload
