"""A primed, stateful follow-up conversation about one diagnosis."""

from __future__ import annotations

import logging
from contextlib import aclosing
from typing import Any, AsyncIterator, Optional

from models.diagnosis_record import DiagnosisRecord
from models.session_models import SessionState
from services.errors import PrimingFailedError, SessionError, StreamError
from services.openai.media_inputs import build_seed_history, encode_image
from services.openai.prompts import CHAT_SYSTEM_INSTRUCTION, SEED_FRAMING


class ConversationSession:
	"""Multi-turn chat bound to exactly one DiagnosisRecord.

	The bound record never changes; a new diagnosis needs a new session.
	"""

	def __init__(
		self,
		capability,
		record: DiagnosisRecord,
		system_instruction: str = CHAT_SYSTEM_INSTRUCTION,
	) -> None:
		if capability is None:
			raise ValueError("AI capability is required.")
		if record is None:
			raise ValueError("A diagnosis record is required to start a session.")
		self.capability = capability
		self._record = record
		self.system_instruction = system_instruction
		self.state = SessionState.UNINITIALIZED
		self._handle: Optional[Any] = None

	@property
	def record(self) -> DiagnosisRecord:
		return self._record

	@property
	def ready(self) -> bool:
		return self.state is SessionState.READY

	async def prime(self) -> None:
		"""Replay the image and its diagnosis as seed history and open the chat.

		Raises:
			PrimingFailedError: If the image cannot be encoded or the service rejects the seed.
		"""
		if self.state is not SessionState.UNINITIALIZED:
			raise SessionError(f"Cannot prime a session in state '{self.state.value}'.")
		self.state = SessionState.PRIMING
		try:
			payload = await encode_image(self._record.source_image)
			seed = build_seed_history(payload, SEED_FRAMING, self._record.diagnosis_text)
			self._handle = await self.capability.create_session(self.system_instruction, seed)
		except Exception as exc:
			logging.error("Error initializing chat session for record %s: %s", self._record.record_id, exc)
			self._handle = None
			self.state = SessionState.UNINITIALIZED
			raise PrimingFailedError(f"Failed to start chat session: {exc}") from exc
		self.state = SessionState.READY

	async def send_message(self, text: str) -> AsyncIterator[str]:
		"""Yield the non-empty fragments of the reply to `text` in arrival order.

		The returned generator is single-use. Closing it early leaves the
		session READY.

		Raises:
			SessionError: If the session is not READY.
			StreamError: If the service fails mid-stream.
		"""
		if self.state is not SessionState.READY:
			raise SessionError(f"Cannot send a message while session is '{self.state.value}'.")
		self.state = SessionState.STREAMING
		try:
			async with aclosing(self.capability.stream_send(self._handle, text)) as fragments:
				async for fragment in fragments:
					if fragment:
						yield fragment
		except Exception as exc:
			self.state = SessionState.FAILED
			logging.error("Error streaming chat reply for record %s: %s", self._record.record_id, exc)
			raise StreamError(str(exc) or "Chat stream failed.") from exc
		finally:
			self.state = SessionState.READY
