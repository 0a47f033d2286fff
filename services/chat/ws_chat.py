"""Dispatch chat websocket events to the conversation controller."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Set

from fastapi import WebSocket

from models.session_models import ConversationTurn
from services.chat.conversation_controller import ConversationController


class ChatSocketHandler:
	"""Route websocket messages for the single follow-up chat panel.

	Submissions run as tasks so the socket keeps reading while a reply
	streams; a second submission in the meantime is answered with
	`chat.busy`.
	"""

	def __init__(self, controller: ConversationController) -> None:
		self.controller = controller
		self._tasks: Set[asyncio.Task] = set()

	async def handle(self, websocket: WebSocket, payload: Dict[str, Any]) -> None:
		"""Process a single inbound websocket payload."""
		request_id = payload.get("request_id")
		message_type = payload.get("type")
		try:
			if message_type == "chat.open":
				await self.controller.open()
				await self._send_transcript(websocket, request_id)
			elif message_type == "chat.close":
				self.controller.close()
				await self._send(websocket, {"type": "chat.closed", "request_id": request_id})
			elif message_type == "chat.transcript":
				await self._send_transcript(websocket, request_id)
			elif message_type == "chat.submit":
				self._start_submit(websocket, request_id, payload)
			else:
				raise ValueError("Unsupported message type.")
		except Exception as exc:
			await self._send_error(websocket, request_id, str(exc))

	def _start_submit(self, websocket: WebSocket, request_id: Any, payload: Dict[str, Any]) -> None:
		text = (payload.get("text") or "").strip()
		if not text:
			raise ValueError("Message text is required.")
		task = asyncio.create_task(self._run_submit(websocket, request_id, text))
		self._tasks.add(task)
		task.add_done_callback(self._on_task_done)

	async def _run_submit(self, websocket: WebSocket, request_id: Any, text: str) -> None:
		if self.controller.busy:
			await self._send(websocket, {"type": "chat.busy", "request_id": request_id})
			return
		if not self.controller.ready:
			await self._send_error(websocket, request_id, "Chat is not ready; analyze an image and open the chat first.")
			return

		async def on_update(turn: ConversationTurn) -> None:
			await self._send(websocket, {"type": "chat.fragment", "request_id": request_id, "content": turn.text})

		reply = await self.controller.submit(text, on_update=on_update)
		await self._send(
			websocket,
			{
				"type": "chat.done",
				"request_id": request_id,
				"reply": reply.text if reply else None,
				"error": self.controller.last_error,
				"messages": self.controller.transcript(),
			},
		)

	def _on_task_done(self, task: asyncio.Task) -> None:
		self._tasks.discard(task)
		if task.cancelled():
			return
		exc = task.exception()
		if exc is not None:
			logging.error("Chat submission failed: %s", exc)

	async def aclose(self) -> None:
		"""Cancel submissions still streaming when the socket goes away."""
		for task in list(self._tasks):
			task.cancel()
		if self._tasks:
			await asyncio.gather(*self._tasks, return_exceptions=True)

	async def _send_transcript(self, websocket: WebSocket, request_id: Any) -> None:
		status = self.controller.status()
		await self._send(websocket, {"type": "chat.transcript", "request_id": request_id, **status})

	async def _send_error(self, websocket: WebSocket, request_id: Any, detail: str) -> None:
		await self._send(websocket, {"type": "error", "request_id": request_id, "detail": detail})

	async def _send(self, websocket: WebSocket, payload: Dict[str, Any]) -> None:
		await websocket.send_text(json.dumps(payload))
