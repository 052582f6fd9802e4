"""
LLM Queue Service - Redis-backed asynchronous chat replies

WHY THIS EXISTS:
Inference takes seconds. The HTTP request that carries a chat turn must not
wait for it, so the turn is pushed to Redis as an envelope and answered by a
background worker. The caller reads the reply from the conversation history
later.

ARCHITECTURE:
  [Client] -> [FastAPI] -> LPUSH envelope -> [Worker BLMOVE] -> Inference
                  |                                |
            Returns 202                  Appends assistant message
            immediately                  to chat:history:{id}

DELIVERY:
- BLMOVE moves each envelope into a processing list, so an envelope taken by a
  worker that dies before hand-off is pushed back on the next start.
- Once the envelope is handed to its task it is acknowledged (removed from the
  processing list). A crash after that point loses the reply. Accepted, not
  retried.
- No ordering across envelopes, including two turns of the same conversation.
"""
import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Set

import redis.asyncio as redis
from redis import exceptions as redis_exceptions
from pydantic import ValidationError

from datasense.models.chat import AppMetadata, ChatMessage, DispatchEnvelope, MessageRole
from datasense.services.app_metadata_service import AppMetadataService
from datasense.services.conversation_service import ConversationService
from datasense.services.exceptions import BrokerUnavailableError
from datasense.services.inference_client import InferenceClient

logger = logging.getLogger(__name__)


def build_context_prompt(
    user_message: str,
    history: List[ChatMessage],
    app_metadata: Optional[AppMetadata],
    max_history: int = 10,
) -> str:
    """Owner context, then the last N messages, then the new turn"""
    lines: List[str] = []

    if app_metadata is not None:
        if app_metadata.description:
            lines.append(f"Application context: {app_metadata.description}")
        if app_metadata.links:
            lines.append("Relevant links:")
            for link in app_metadata.links:
                lines.append(f"- {link.title}: {link.url}")

    recent = history[-max_history:] if max_history > 0 else []
    if recent:
        lines.append("")
        lines.append("Conversation history:")
        for msg in recent:
            lines.append(f"{msg.role}: {msg.content}")

    lines.append("")
    lines.append(f"User: {user_message}")
    lines.append("Assistant:")
    return "\n".join(lines) + "\n"


# ============================================
# 1. PRODUCER (used by API endpoints)
# ============================================

class LLMQueueService:
    """
    Thin Redis queue wrapper. The endpoint calls enqueue() and returns.
    No inference happens in the request.
    """

    def __init__(self, client: redis.Redis, queue_key: str):
        self.redis = client
        self.queue_key = queue_key

    async def enqueue(
        self,
        conversation_id: str,
        prompt: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> DispatchEnvelope:
        """
        Push one envelope for this turn. Does not wait for the reply.

        Raises:
            BrokerUnavailableError: Redis rejected or could not take the push
        """
        envelope = DispatchEnvelope(conversation_id=conversation_id, prompt=prompt, metadata=metadata)
        try:
            depth = await self.redis.lpush(self.queue_key, envelope.to_wire())
        except redis_exceptions.RedisError as e:
            logger.error(f"Failed to enqueue turn for conversation {conversation_id}: {e}")
            raise BrokerUnavailableError(f"Work queue unavailable: {e}") from e

        logger.info(f"Queued turn for conversation {conversation_id} (queue_depth={depth})")
        return envelope

    async def get_queue_depth(self) -> int:
        """For monitoring/health checks."""
        try:
            return await self.redis.llen(self.queue_key)
        except redis_exceptions.RedisError:
            return -1


# ============================================
# 2. WORKER (one per process, on the event loop)
# ============================================

class LLMQueueWorker:
    """
    Polls the queue and answers each envelope in its own supervised task.
    """

    ERROR_BACKOFF = 5.0

    def __init__(
        self,
        client: redis.Redis,
        queue_key: str,
        conversation_service: ConversationService,
        app_metadata_service: AppMetadataService,
        inference_client: InferenceClient,
        poll_timeout: float = 5.0,
        concurrency: int = 8,
        shutdown_grace: float = 30.0,
        max_history: int = 10,
    ):
        self.redis = client
        self.queue_key = queue_key
        self.processing_key = f"{queue_key}:processing"
        self.conversation_service = conversation_service
        self.app_metadata_service = app_metadata_service
        self.inference_client = inference_client
        self.poll_timeout = poll_timeout
        self.shutdown_grace = shutdown_grace
        self.max_history = max_history

        self.concurrency = max(1, concurrency)

        self._slots = asyncio.Semaphore(self.concurrency)
        self._tasks: Set[asyncio.Task] = set()
        self._running = False
        self._loop_task: Optional[asyncio.Task] = None

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    # ---------- lifecycle ----------

    def start(self) -> asyncio.Task:
        """Start the poll loop as a background task (called from the app lifespan)."""
        if self._loop_task and not self._loop_task.done():
            logger.warning("LLM queue worker already running")
            return self._loop_task
        self._running = True
        self._loop_task = asyncio.create_task(self.run(), name="llm-queue-worker")
        return self._loop_task

    async def stop(self) -> None:
        """Stop polling, give in-flight turns the grace period, cancel the rest."""
        self._running = False
        if self._loop_task:
            try:
                await asyncio.wait_for(self._loop_task, timeout=self.poll_timeout + 1)
            except asyncio.TimeoutError:
                self._loop_task.cancel()
                try:
                    await self._loop_task
                except asyncio.CancelledError:
                    pass

        if self._tasks:
            logger.info(f"Waiting for {len(self._tasks)} in-flight turns")
            _, pending = await asyncio.wait(set(self._tasks), timeout=self.shutdown_grace)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                logger.warning(f"Cancelled {len(pending)} turns still running at shutdown")

        logger.info("LLM queue worker stopped")

    async def recover_orphans(self) -> int:
        """Push envelopes left in the processing list by a dead worker back onto the queue."""
        recovered = 0
        while True:
            moved = await self.redis.lmove(self.processing_key, self.queue_key, "LEFT", "RIGHT")
            if moved is None:
                break
            recovered += 1
        if recovered:
            logger.info(f"Recovered {recovered} orphaned envelopes")
        return recovered

    async def run(self) -> None:
        """Main poll loop. Checks the running flag at least once per poll timeout."""
        self._running = True
        logger.info(f"LLM queue worker started, listening on {self.queue_key}")

        try:
            await self.recover_orphans()
        except redis_exceptions.RedisError as e:
            logger.error(f"Queue recovery failed: {e}")

        while self._running:
            await self._slots.acquire()
            try:
                raw = await self.poll_once()
            except asyncio.CancelledError:
                self._slots.release()
                raise
            except redis_exceptions.RedisError as e:
                self._slots.release()
                logger.error(f"Error polling work queue: {e}")
                await asyncio.sleep(self.ERROR_BACKOFF)
                continue

            if raw is None:
                self._slots.release()
                continue

            await self.dispatch(raw)

    async def poll_once(self) -> Optional[str]:
        """Wait up to poll_timeout for one envelope; None on timeout."""
        return await self.redis.blmove(
            self.queue_key, self.processing_key, self.poll_timeout, "RIGHT", "LEFT"
        )

    async def dispatch(self, raw: str) -> asyncio.Task:
        """
        Hand one envelope to its own task, then acknowledge it.

        The caller must already hold a concurrency slot; the task releases it.
        """
        task = asyncio.create_task(self.handle(raw))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

        try:
            await self.redis.lrem(self.processing_key, 1, raw)
        except redis_exceptions.RedisError as e:
            logger.warning(f"Failed to acknowledge envelope: {e}")
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        self._slots.release()
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Chat turn failed: {type(exc).__name__}: {exc}", exc_info=exc)

    # ---------- per-envelope work ----------

    async def handle(self, raw: str) -> Optional[ChatMessage]:
        envelope = self.decode(raw)
        if envelope is None:
            return None
        return await self.process_envelope(envelope)

    @staticmethod
    def decode(raw: str) -> Optional[DispatchEnvelope]:
        try:
            payload = json.loads(raw)
        except ValueError:
            logger.warning("Discarding envelope that is not valid JSON")
            return None
        if not isinstance(payload, dict) or not payload.get("conversationId"):
            logger.warning("Message missing conversationId")
            return None
        if "prompt" not in payload:
            logger.warning("Message missing prompt")
            return None
        try:
            return DispatchEnvelope.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Discarding malformed envelope: {e}")
            return None

    async def process_envelope(self, envelope: DispatchEnvelope) -> Optional[ChatMessage]:
        """
        Answer one turn.
        1. Look up the conversation (unknown -> dropped)
        2. Load history and owner context (a cache miss means no context)
        3. Call the model with the context prompt
        4. Append the reply and record activity
        """
        conversation_id = envelope.conversation_id
        conversation = await self.conversation_service.get_conversation(conversation_id)
        if conversation is None:
            logger.warning(f"Conversation not found: {conversation_id}")
            return None

        history = await self.conversation_service.get_history(conversation_id)
        # The endpoint stores the user turn before enqueueing; it is the new turn, not context
        if history and history[-1].role == MessageRole.USER and history[-1].content == envelope.prompt:
            history = history[:-1]
        app_metadata = await self.app_metadata_service.get_app_metadata(conversation.owner_id)

        prompt = build_context_prompt(envelope.prompt, history, app_metadata, self.max_history)
        reply = await self.inference_client.infer(prompt)

        assistant_message = ChatMessage(
            conversation_id=conversation_id,
            role=MessageRole.ASSISTANT,
            content=reply.strip(),
            metadata=envelope.metadata,
        )
        await self.conversation_service.append_message(conversation_id, assistant_message)
        await self.conversation_service.touch(conversation)

        logger.info(f"Processed queued turn for conversation: {conversation_id} ({len(history)} context messages)")
        return assistant_message
