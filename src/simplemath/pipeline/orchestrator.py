"""Round orchestrator: the three-round prompt chain behind every chat message.

A user request runs through requirement analysis, technical feasibility and
code generation. Each round sends its fixed system prompt plus the previous
round's reply to the LLM. Progress is tracked in a ``ProcessingStatus`` and
mirrored into the transcript as transient progress messages.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Callable, Optional

from ..animation import AnimationService
from ..config import OrchestratorConfig
from ..conversation.store import ConversationStore
from ..errors import LLMClientError, OrchestratorBusyError, ValidationError
from ..llm_client import LLMClient
from ..models import Animation, Message, MessageRole, ProcessingStatus
from .code_extractor import CodeExtractor
from .round_coordinator import Round, RoundConfig, RoundCoordinator

logger = logging.getLogger(__name__)


class RoundOrchestrator:
    """Drives one user message through the three generation rounds.

    The orchestrator is the only writer of the current conversation while a
    run is in flight. A second ``send_message`` during a run is rejected, not
    queued.

    Example:
        orchestrator = RoundOrchestrator(client, store, animation_service)
        orchestrator.set_on_progress(lambda status: print(status.round_name))

        if await orchestrator.send_message("画一个旋转的正方形"):
            print(orchestrator.last_code)
        else:
            print(orchestrator.error)
    """

    def __init__(
        self,
        llm_client: LLMClient,
        store: ConversationStore,
        animation_service: Optional[AnimationService] = None,
        config: Optional[OrchestratorConfig] = None,
        coordinator: Optional[RoundCoordinator] = None,
        extractor: Optional[CodeExtractor] = None,
    ):
        """Initialize the orchestrator.

        Args:
            llm_client: Client used for every round
            store: Conversation store receiving the transcript
            animation_service: Optional collaborator with
                ``create_animation(code, title, width, height)``
            config: Orchestrator configuration
            coordinator: Round prompts and labels. Defaults to one built
                from ``config.prompts_dir``.
            extractor: Code extractor for the final reply
        """
        self.llm_client = llm_client
        self.store = store
        self.animation_service = animation_service
        self.config = config or OrchestratorConfig()
        self.coordinator = coordinator or RoundCoordinator(prompts_dir=self.config.prompts_dir)
        self.extractor = extractor or CodeExtractor()

        self._status = ProcessingStatus()
        self._busy = False
        self._on_progress: Optional[Callable[[ProcessingStatus], None]] = None

        self.error: Optional[str] = None
        self.last_code: Optional[str] = None
        self.last_animation: Optional[Animation] = None

    @property
    def is_loading(self) -> bool:
        return self._busy

    @property
    def status(self) -> ProcessingStatus:
        """Snapshot of the current (or last) run's progress."""
        return self._status.snapshot()

    def set_on_progress(self, callback: Callable[[ProcessingStatus], None]) -> None:
        """Set callback receiving a status snapshot on every change."""
        self._on_progress = callback

    async def send_message(self, user_text: str) -> bool:
        """Run the three-round pipeline for one user message.

        Args:
            user_text: The user's request

        Returns:
            True if all rounds completed, False if a round failed (see
            ``error``)

        Raises:
            ValidationError: If ``user_text`` is empty or whitespace
            OrchestratorBusyError: If a run is already in flight
        """
        if not user_text or not user_text.strip():
            raise ValidationError("Message must not be empty")
        if self._busy:
            raise OrchestratorBusyError("A generation run is already in progress")

        self._busy = True
        self.error = None
        self.last_code = None
        self.last_animation = None
        self._status = ProcessingStatus(is_processing=True)
        self._notify_progress()

        try:
            return await self._run(user_text)
        finally:
            self._reset_status()
            self._busy = False
            self.store.save()

    async def _run(self, user_text: str) -> bool:
        if self.store.current_conversation is None:
            self.store.create_conversation()
        self.store.add_message(MessageRole.USER, user_text)

        current_input = user_text
        last_progress_id: Optional[str] = None

        for config in self.coordinator.configs():
            rnd = config.round
            self._status.current_round = rnd.value
            self._status.round_name = config.display_name
            self._notify_progress()

            if last_progress_id is not None:
                self.store.remove_progress_message(last_progress_id)
            start = self._add_progress(rnd, "start", f"🔄 第{rnd.value}轮：{config.display_name}中...")

            logger.info("Round %d (%s) started", rnd.value, rnd.key)
            try:
                reply = await self._call_round(config, current_input)
            except LLMClientError as e:
                self.error = f"第{rnd.value}轮（{config.display_name}）失败: {e}"
                logger.error("Round %d (%s) failed: %s", rnd.value, rnd.key, e)
                return False
            logger.info("Round %d (%s) finished with %d chars", rnd.value, rnd.key, len(reply))

            self._status.round_results.append(reply)
            self._status.completed_rounds.append(rnd.value)

            self.store.remove_progress_message(start.id)
            done = self._add_progress(rnd, "done", f"✅ 第{rnd.value}轮：{config.display_name}完成")
            last_progress_id = done.id

            if rnd is not Round.CODEGEN:
                self.store.add_message(MessageRole.ASSISTANT, reply, round=rnd.value)

            current_input = reply
            self._notify_progress()

        if last_progress_id is not None:
            self.store.remove_progress_message(last_progress_id)

        final = self.store.add_message(MessageRole.ASSISTANT, current_input, round=Round.CODEGEN.value)
        self._hand_off_code(final)
        return True

    async def _call_round(self, config: RoundConfig, current_input: str) -> str:
        messages = [
            {"role": MessageRole.SYSTEM.value, "content": config.system_prompt},
            {"role": MessageRole.USER.value, "content": current_input},
        ]
        return await self.llm_client.generate_response(messages)

    def _add_progress(self, rnd: Round, phase: str, content: str) -> Message:
        # round + timestamp composite keeps ids distinct across rounds
        message_id = f"progress-{rnd.value}-{phase}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"
        return self.store.add_message(
            MessageRole.SYSTEM,
            content,
            round=rnd.value,
            is_progress=True,
            message_id=message_id,
        )

    def _hand_off_code(self, final: Message) -> None:
        """Extract code from the final reply and pass it to the animation service."""
        if not self.extractor.contains_p5_code(final.content):
            return
        code = self.extractor.extract_code(final.content)
        if not code:
            return

        self.last_code = code
        self.store.update_message(final.id, generated_code=code)

        if self.animation_service is None:
            return
        try:
            self.last_animation = self.animation_service.create_animation(
                code,
                self.config.default_title,
                self.config.animation_width,
                self.config.animation_height,
            )
        except Exception as e:
            logger.warning("Failed to create animation: %s", e, exc_info=True)

    def _reset_status(self) -> None:
        self._status.is_processing = False
        self._status.current_round = 0
        self._status.round_name = ""
        self._notify_progress()

    def _notify_progress(self) -> None:
        if self._on_progress:
            self._on_progress(self._status.snapshot())
