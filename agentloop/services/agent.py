"""Conversation engine driving the request / tool-dispatch loop."""

from dataclasses import replace
from typing import Literal, TypeVar

from agentloop.clients.base import ChatTransport
from agentloop.errors import (
    IterationLimitError,
    ToolExecutionError,
    ToolNotFoundError,
    UnsupportedResponseError,
)
from agentloop.models.llm import (
    AgentRunResult,
    AssistantMessage,
    ChatMessage,
    ChatOptions,
    LLMUsage,
    SystemMessage,
    ToolCall,
    ToolCallsMessage,
    ToolResultMessage,
    UserMessage,
)
from agentloop.services.coercer import ResponseCoercer
from agentloop.tools.base import ToolProvider
from agentloop.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ITERATIONS = 5

UnknownToolPolicy = Literal["raise", "skip"]


class ConversationEngine:
    """Agent holding one conversation with a chat backend.

    History starts with the system message and grows across ``run`` calls, so
    a second ``run`` continues the same dialogue. Nothing trims it; call
    :meth:`clear_history` to start over.
    """

    def __init__(
        self,
        transport: ChatTransport,
        system: str,
        *,
        unknown_tool_policy: UnknownToolPolicy = "raise",
    ):
        """Initialize the engine.

        Args:
            transport: Chat backend client used for every request
            system: System prompt placed first in the history
            unknown_tool_policy: ``"raise"`` aborts the run when the model asks
                for a tool nobody provides; ``"skip"`` logs it and reports the
                failure back to the model instead
        """
        self.transport = transport
        self.system = system.strip()
        self.unknown_tool_policy = unknown_tool_policy
        self._history: list[ChatMessage] = [SystemMessage(content=self.system)]

    @property
    def history(self) -> tuple[ChatMessage, ...]:
        """Read-only view of the conversation so far."""
        return tuple(self._history)

    def clear_history(self, keep_system: bool = True) -> None:
        """Forget the conversation, keeping the system message unless told otherwise."""
        self._history = [SystemMessage(content=self.system)] if keep_system else []

    async def run(
        self,
        model: str,
        prompt: str,
        *,
        tools: ToolProvider | None = None,
        max_iterations: int | None = None,
        options: ChatOptions | None = None,
        answer_type: type[T] = str,
    ) -> AgentRunResult[T]:
        """Send a prompt and loop until the model produces a final answer.

        Args:
            model: Model identifier understood by the transport
            prompt: User message appended to the history
            tools: Provider or registry the model may call
            max_iterations: Bound on requests to the backend (default 5)
            options: Sampling options, default temperature 0.2
            answer_type: ``str`` for free text, any pydantic-compatible type
                for structured output

        Returns:
            Decoded answer with the index of the iteration that produced it

        Raises:
            ToolNotFoundError: The model requested a tool nobody provides
            DecodeError: The final text does not match ``answer_type``
            IterationLimitError: No final answer within ``max_iterations``
            UnsupportedResponseError: The backend returned nothing usable
            TransportError: The backend or a remote tool session failed
        """
        logger.debug(f"Agent question: {prompt}")
        self._history.append(UserMessage(content=prompt))

        coercer: ResponseCoercer[T] = ResponseCoercer(answer_type)
        chat_options = replace(options) if options else ChatOptions()
        chat_options.response_format = coercer.response_format()

        limit = DEFAULT_MAX_ITERATIONS if max_iterations is None else max_iterations
        usage = LLMUsage()

        for iteration in range(limit):
            logger.debug(f"Agent iteration {iteration + 1}/{limit}")
            descriptors = tools.list_tools() if tools is not None else []

            response = await self.transport.send(model, self.history, descriptors, chat_options)
            usage.add(response.usage)

            if response.reasoning:
                logger.debug(f"Agent reasoning: {response.reasoning}")

            if response.tool_calls:
                logger.info(f"Model requested {len(response.tool_calls)} tool call(s)")
                self._history.append(ToolCallsMessage(calls=tuple(response.tool_calls), text=response.text))
                for index, call in enumerate(response.tool_calls):
                    try:
                        self._history.append(await self._dispatch(call, tools))
                    except Exception as e:
                        self._close_open_calls(response.tool_calls[index:], e)
                        raise
                continue

            if response.text is not None:
                logger.debug(f"Agent answer: {response.text}")
                self._history.append(AssistantMessage(content=response.text))
                value = coercer.decode(response.text)
                logger.info(
                    f"Agent run completed in {iteration + 1} iteration(s), "
                    f"tokens: {usage.total_tokens}, cache hit rate: {usage.cache_hit_rate:.1f}%"
                )
                return AgentRunResult(value=value, iteration=iteration, usage=usage)

            raise UnsupportedResponseError(f"Unsupported response from model {response.model or model}")

        logger.warning(f"Agent run reached max iterations ({limit})")
        raise IterationLimitError(limit)

    async def _dispatch(self, call: ToolCall, tools: ToolProvider | None) -> ToolResultMessage:
        """Run one tool call and turn its outcome into a result message."""
        logger.debug(f"Tool request: {call.tool_name} with arguments: {call.arguments}")
        try:
            if tools is None:
                raise ToolNotFoundError(call.tool_name)
            result = await tools.invoke(call.tool_name, call.arguments)
        except ToolNotFoundError:
            if self.unknown_tool_policy == "raise":
                logger.error(f"Unknown tool requested: {call.tool_name}")
                raise
            logger.warning(f"Skipping unknown tool: {call.tool_name}")
            return ToolResultMessage(
                call_id=call.call_id, content=f"Error: Unknown tool {call.tool_name}", is_error=True
            )
        except ToolExecutionError as e:
            # Failures go back to the model, some carry information it can act on
            logger.warning(f"Tool {call.tool_name} failed: {e}")
            return ToolResultMessage(call_id=call.call_id, content=str(e), is_error=True)

        logger.debug(f"Tool {call.tool_name} result: {result[:100]}")
        return ToolResultMessage(call_id=call.call_id, content=result)

    def _close_open_calls(self, calls: list[ToolCall], error: Exception) -> None:
        """Record a result for every call of an aborted turn.

        Backends reject a history where a tool call has no result, so the
        session stays usable after the run fails.
        """
        failed, *skipped = calls
        if isinstance(error, ToolNotFoundError):
            content = f"Error: Unknown tool {failed.tool_name}"
        else:
            content = f"Error: {error}"
        self._history.append(ToolResultMessage(call_id=failed.call_id, content=content, is_error=True))
        for call in skipped:
            self._history.append(
                ToolResultMessage(
                    call_id=call.call_id, content="Error: Not executed, the run was aborted", is_error=True
                )
            )
