"""Exception hierarchy for agent runs and tool dispatch."""


class AgentError(Exception):
    """Base class for every failure surfaced by agentloop."""


class ToolNotFoundError(AgentError):
    """Requested tool name cannot be resolved by the provider or registry."""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool named '{tool_name}' not found")


class ToolExecutionError(AgentError):
    """A resolved tool failed.

    The message is written back into the conversation as the tool result, so it
    should be something the model can act on.
    """

    def __init__(self, message: str, tool_name: str | None = None):
        self.tool_name = tool_name
        super().__init__(message)


class DecodeError(AgentError):
    """Final answer text could not be parsed into the requested answer type."""

    def __init__(self, message: str, raw_text: str):
        self.raw_text = raw_text
        super().__init__(message)


class IterationLimitError(AgentError):
    """The model kept requesting tools until the iteration bound was reached."""

    def __init__(self, max_iterations: int):
        self.max_iterations = max_iterations
        super().__init__(f"Unable to get response in {max_iterations} tries")


class UnsupportedResponseError(AgentError):
    """The chat backend returned neither text nor tool calls."""


class TransportError(AgentError):
    """The chat backend or a remote tool session failed."""
