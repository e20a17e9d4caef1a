"""Chat Orchestrator — runs one user turn from validation to the persisted reply.

A turn walks the :class:`~rhapsody.fsm.TurnPhase` machine::

    idle -> validating -> awaiting_compression -> streaming -> finalizing -> idle
                     \\-> idle (refused)         \\-> failed -> idle

The user message is appended and saved before the model is asked anything,
so a failed turn only ever loses the in-flight reply.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from .context import ContextBuilder, TableInfo
from .context_compression import ContextCompressor, merge_summary
from .errors import TransportError, ValidationError, ValidationFailure
from .fsm import TurnPhase, TurnState
from .markup import ContentRenderer
from .message_store import MessageStore
from .models import Message, StateSnapshot
from .persistence import PersistenceGateway
from .provider import ChatRequest, LLMProvider, transport_error_from
from .telemetry import trace_chat_turn

logger = logging.getLogger(__name__)

ERROR_REPLY = "Sorry, I couldn't get a response. Please check your API key and try again."

PartialObserver = Callable[[Message], None]


class TurnStatus(StrEnum):
    COMPLETED = "completed"
    REFUSED = "refused"
    FAILED = "failed"


@dataclass
class TurnOutcome:
    """What happened to a submitted turn."""

    status: TurnStatus
    message: Message | None = None
    reason: ValidationFailure | None = None
    error: str = ""
    compressed: bool = False

    @property
    def ok(self) -> bool:
        return self.status == TurnStatus.COMPLETED


class _StreamingTurn:
    """Listener for one streamed reply; renders each fragment into the placeholder."""

    def __init__(
        self,
        store: MessageStore,
        placeholder: Message,
        on_partial: PartialObserver | None = None,
    ) -> None:
        self._store = store
        self._placeholder = placeholder
        self._on_partial = on_partial
        self._buffer: list[str] = []
        self.completed = False
        self.error: Exception | None = None

    @property
    def text(self) -> str:
        return "".join(self._buffer)

    @property
    def chunk_count(self) -> int:
        return len(self._buffer)

    def on_chunk(self, text: str) -> None:
        if not text:
            return
        self._buffer.append(text)
        self._store.update_streaming(self._placeholder, self.text)
        logger.debug("Chunk %d (%d chars)", len(self._buffer), len(text))
        if self._on_partial is not None:
            self._on_partial(self._placeholder)

    def on_complete(self) -> None:
        self.completed = True

    def on_error(self, error: Exception) -> None:
        self.error = error


class ChatOrchestrator:
    """Submits user turns against the current Scene of a shared :class:`StateSnapshot`."""

    def __init__(
        self,
        state: StateSnapshot,
        provider: LLMProvider,
        compressor: ContextCompressor,
        persistence: PersistenceGateway,
        table: TableInfo | None = None,
        api_key: str = "",
        model: str = "",
        streaming: bool = True,
        renderer: ContentRenderer | None = None,
    ) -> None:
        self._state = state
        self._provider = provider
        self._compressor = compressor
        self._persistence = persistence
        self.table = table or TableInfo()
        self._api_key = api_key
        self._model = model
        self._streaming = streaming
        self._renderer = renderer
        self._builder = ContextBuilder()
        self._turn = TurnState()

    @property
    def turn(self) -> TurnState:
        return self._turn

    @property
    def is_busy(self) -> bool:
        return self._turn.is_busy

    def validate(self, text: str) -> None:
        """Raise :class:`ValidationError` for the first unmet precondition."""
        if self._state.current_session is None:
            raise ValidationError(ValidationFailure.NO_ACTIVE_SESSION)
        if not text.strip():
            raise ValidationError(ValidationFailure.EMPTY_INPUT)
        if self._provider.capabilities().requires_credential and not self._api_key:
            raise ValidationError(ValidationFailure.MISSING_CREDENTIAL)
        if self._state.current_scene is None:
            raise ValidationError(ValidationFailure.NO_ACTIVE_SCENE)

    async def submit(self, text: str, on_partial: PartialObserver | None = None) -> TurnOutcome:
        if self._turn.is_busy:
            return TurnOutcome(
                status=TurnStatus.REFUSED,
                reason=ValidationFailure.TURN_IN_PROGRESS,
                error=str(ValidationError(ValidationFailure.TURN_IN_PROGRESS)),
            )

        self._turn = self._turn.transition(TurnPhase.VALIDATING)
        try:
            self.validate(text)
        except ValidationError as exc:
            self._turn = self._turn.transition(TurnPhase.IDLE)
            logger.info("Turn refused: %s", exc.reason)
            return TurnOutcome(status=TurnStatus.REFUSED, reason=exc.reason, error=str(exc))

        scene = self._state.current_scene
        assert scene is not None
        store = MessageStore(scene, self._renderer)
        with trace_chat_turn(scene.id) as span:
            outcome = await self._run(store, text.strip(), on_partial)
            span.set_attributes(
                {
                    "turn.status": outcome.status.value,
                    "turn.chunks": self._turn.chunk_count,
                    "turn.compressed": outcome.compressed,
                }
            )
        return outcome

    # ------------------------------------------------------------------
    # Turn steps
    # ------------------------------------------------------------------

    async def _run(self, store: MessageStore, text: str, on_partial: PartialObserver | None) -> TurnOutcome:
        store.append(store.user_message(text))
        self._turn = self._turn.transition(TurnPhase.AWAITING_COMPRESSION)

        try:
            compressed = await self._compress_if_needed(store)
        except TransportError as exc:
            return self._fail(store, exc)
        self._persistence.save(self._state)

        placeholder = store.append(store.ai_placeholder())
        request = ChatRequest(
            model=self._model,
            messages=self._builder.build(
                [m for m in store.messages if m.id != placeholder.id],
                self._state.scene_history,
                self.table.system_info,
                self.table.world_name,
                self.table.location_name,
                self._state.context_summary,
            ),
        )

        self._turn = self._turn.transition(TurnPhase.STREAMING)
        listener = _StreamingTurn(store, placeholder, on_partial)
        try:
            if self._streaming:
                await self._provider.stream_chat(request, listener)
            else:
                response = await self._provider.chat(request)
                listener.on_chunk(response.content)
                listener.on_complete()
        except Exception as exc:
            listener.on_error(exc)

        if listener.error is not None:
            return self._fail(store, transport_error_from(listener.error), placeholder)

        self._turn = self._turn.transition(TurnPhase.FINALIZING)
        self._turn.chunk_count = listener.chunk_count
        store.update_streaming(placeholder, listener.text, complete=True)
        self._persistence.save(self._state)
        self._turn = self._turn.transition(TurnPhase.IDLE)
        logger.info(
            "Turn completed: %d chunks, %d tokens", listener.chunk_count, placeholder.token_count or 0
        )
        return TurnOutcome(status=TurnStatus.COMPLETED, message=placeholder, compressed=compressed)

    async def _compress_if_needed(self, store: MessageStore) -> bool:
        state = self._state
        if not self._compressor.should_compress(store.messages, state.scene_history, state.context_summary):
            return False
        result = await self._compressor.compress(store.messages)
        if not result.changed:
            return False
        store.replace_all(result.updated_messages)
        state.context_summary = merge_summary(state.context_summary, result.summary)
        return True

    def _fail(
        self, store: MessageStore, error: TransportError, placeholder: Message | None = None
    ) -> TurnOutcome:
        self._turn = self._turn.transition(TurnPhase.FAILED)
        # a placeholder stops loading once its first chunk lands
        if placeholder is not None:
            store.remove(placeholder.id)
        removed = store.remove_loading()
        message = store.append(store.error_message(ERROR_REPLY))
        logger.warning("Turn failed (%d loading messages removed): %s", removed, error)
        self._persistence.save(self._state)
        self._turn = self._turn.transition(TurnPhase.IDLE)
        return TurnOutcome(status=TurnStatus.FAILED, message=message, error=str(error))
