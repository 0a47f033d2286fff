"""Orchestrate the follow-up chat: session lifecycle and the visible transcript."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from models.diagnosis_record import DiagnosisRecord
from models.session_models import ASSISTANT, USER, ConversationTurn
from services.chat.conversation_session import ConversationSession
from services.errors import PrimingFailedError, StreamError
from services.openai.prompts import GREETING_NO_CONTEXT, GREETING_READY, PRIMING_FAILED_MESSAGE, STREAM_APOLOGY

TurnCallback = Callable[[ConversationTurn], Awaitable[None]]


class ConversationController:
	"""Own the active session (or none) and the transcript shown to the user.

	Turns are only ever appended; while a reply streams, its live turn is the
	last element of `turns`. Writes from a stream whose session has since been
	replaced are dropped.
	"""

	def __init__(self, capability, session_factory: Callable[..., ConversationSession] = ConversationSession) -> None:
		self.capability = capability
		self.session_factory = session_factory
		self.is_open = False
		self.context: Optional[DiagnosisRecord] = None
		self.session: Optional[ConversationSession] = None
		self.turns: List[ConversationTurn] = []
		self.last_error: Optional[str] = None
		self._streaming_session: Optional[ConversationSession] = None
		self._priming_record: Optional[DiagnosisRecord] = None

	@property
	def ready(self) -> bool:
		return self.session is not None and self.session.ready

	@property
	def busy(self) -> bool:
		"""True while a reply from the active session is still streaming."""
		return self._streaming_session is not None and self._streaming_session is self.session

	async def open(self) -> None:
		"""Show the chat, priming a session for the bound diagnosis if needed."""
		self.is_open = True
		if self.context is None:
			if not self.turns:
				self.turns.append(ConversationTurn(ASSISTANT, GREETING_NO_CONTEXT))
			return
		if self.session is None:
			await self._prime(self.context)

	def close(self) -> None:
		self.is_open = False

	def on_new_image(self) -> None:
		"""Unbind the current diagnosis when a different image is chosen.

		The session and transcript are dropped before the new image is
		analyzed, so a failed analysis leaves no chat about the old image.
		"""
		if self.context is not None:
			logging.info("Unbinding chat from record %s for a new image", self.context.record_id)
		self.context = None
		self.session = None
		self.turns = []
		self.last_error = None

	async def on_new_diagnosis(self, record: DiagnosisRecord) -> None:
		"""Drop the current session and transcript and bind `record`.

		Calling again with the same record object does nothing.
		"""
		if record is self.context:
			return
		self.context = record
		self.session = None
		self.turns = []
		self.last_error = None
		if self.is_open:
			await self._prime(record)

	async def _prime(self, record: DiagnosisRecord) -> bool:
		if self._priming_record is record:
			return False
		self._priming_record = record
		session = self.session_factory(self.capability, record)
		try:
			await session.prime()
		except PrimingFailedError as exc:
			if self.context is record:
				self.turns = [ConversationTurn(ASSISTANT, PRIMING_FAILED_MESSAGE)]
				self.last_error = str(exc)
			return False
		finally:
			if self._priming_record is record:
				self._priming_record = None

		if self.context is not record:
			logging.info("Discarding session primed for superseded record %s", record.record_id)
			return False
		self.session = session
		self.turns = [ConversationTurn(ASSISTANT, GREETING_READY)]
		return True

	async def submit(self, text: str, on_update: Optional[TurnCallback] = None) -> Optional[ConversationTurn]:
		"""Send a question and fold the streamed reply into the transcript.

		Returns the assistant turn built from the stream, or None when the
		submission was ignored or nothing arrived.
		"""
		message = (text or "").strip()
		if not message:
			return None
		session = self.session
		if self.busy:
			logging.warning("Ignoring chat message; a reply is still streaming.")
			return None
		if session is None or not session.ready:
			logging.info("Ignoring chat message; no session is ready.")
			return None

		self._streaming_session = session
		self.turns.append(ConversationTurn(USER, message))
		reply: Optional[ConversationTurn] = None
		stream = session.send_message(message)
		try:
			async for fragment in stream:
				if self.session is not session:
					logging.debug("Discarding fragment from replaced session for record %s", session.record.record_id)
					break
				if reply is None:
					reply = ConversationTurn(ASSISTANT, live=True)
					self.turns.append(reply)
				reply.append(fragment)
				if on_update is not None:
					await on_update(reply)
		except StreamError as exc:
			if self.session is session:
				self.turns.append(ConversationTurn(ASSISTANT, STREAM_APOLOGY))
				self.last_error = str(exc)
		finally:
			await stream.aclose()
			if reply is not None:
				reply.finish()
			if self._streaming_session is session:
				self._streaming_session = None
		return reply

	def transcript(self) -> List[Dict[str, Any]]:
		return [turn.as_message() for turn in self.turns]

	def status(self) -> Dict[str, Any]:
		"""Return a JSON-ready snapshot of the chat panel."""
		return {
			"open": self.is_open,
			"ready": self.ready,
			"busy": self.busy,
			"diagnosis_id": self.context.record_id if self.context else None,
			"error": self.last_error,
			"messages": self.transcript(),
		}
