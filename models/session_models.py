"""Conversation domain models for the follow-up chat."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import Any, Dict

USER = "user"
ASSISTANT = "assistant"


class SessionState(enum.Enum):
	"""Lifecycle of a primed conversation session."""

	UNINITIALIZED = "uninitialized"
	PRIMING = "priming"
	READY = "ready"
	STREAMING = "streaming"
	FAILED = "failed"


@dataclass
class ConversationTurn:
	"""One visible transcript entry.

	An assistant turn that is still streaming is `live`; its text only grows
	until `finish()` freezes it.
	"""

	speaker: str
	text: str = ""
	live: bool = False
	created_at: float = field(default_factory=lambda: time.time())

	def append(self, fragment: str) -> None:
		"""Concatenate a streamed fragment onto a live turn."""
		if not self.live:
			raise RuntimeError("Cannot append to a finished turn.")
		self.text += fragment

	def finish(self) -> None:
		self.live = False

	def as_message(self) -> Dict[str, Any]:
		return {"role": self.speaker, "content": self.text, "live": self.live}
