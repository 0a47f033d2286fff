"""HTTP and websocket endpoints for the follow-up chat."""

from __future__ import annotations

import json

from fastapi import APIRouter, Depends, HTTPException, Request, WebSocket
from starlette.websockets import WebSocketDisconnect

from services.chat.conversation_controller import ConversationController
from services.chat.ws_chat import ChatSocketHandler

router = APIRouter()


def _require_chat_controller(websocket: WebSocket) -> ConversationController:
	controller = getattr(websocket.app.state, "chat_controller", None)
	if controller is None:
		raise HTTPException(status_code=500, detail="Chat controller unavailable")
	return controller


@router.get("/chat")
async def get_chat(request: Request):
	"""Return the chat panel state and visible transcript."""
	controller = getattr(request.app.state, "chat_controller", None)
	if controller is None:
		raise HTTPException(status_code=500, detail="Chat controller unavailable")
	return controller.status()


@router.websocket("/ws/chat")
async def chat_socket(websocket: WebSocket, controller: ConversationController = Depends(_require_chat_controller)):
	"""Handle chat open/close/submit events and stream replies over one websocket."""
	await websocket.accept()
	handler = ChatSocketHandler(controller)
	while True:
		try:
			raw = await websocket.receive_text()
		except WebSocketDisconnect:
			break
		except Exception:
			await websocket.send_text(json.dumps({"type": "error", "detail": "Invalid websocket frame"}))
			continue
		try:
			payload = json.loads(raw)
		except Exception:
			await websocket.send_text(json.dumps({"type": "error", "detail": "Payload must be JSON"}))
			continue
		if not isinstance(payload, dict):
			await websocket.send_text(json.dumps({"type": "error", "detail": "Payload must be a JSON object"}))
			continue
		await handler.handle(websocket, payload)
	await handler.aclose()
	try:
		await websocket.close()
	except Exception:
		pass
