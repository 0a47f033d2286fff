"""Description: Plant diagnosis capability backed by OpenAI's Responses API.

The capability is the only object that talks to the AI service. It is built
once around a shared `AsyncOpenAI` client and handed to the analysis client
and to every conversation session.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List

from openai import AsyncOpenAI

from models.image_resource import EncodedPayload
from services.openai.media_inputs import build_analysis_inputs, build_assistant_message, build_user_message
from services.openai.response_parser import extract_delta, extract_text, extract_usage
from utils.media_validation import decode_data_url, verify_image_bytes

DEFAULT_ANALYSIS_MODEL = "gpt-4o"
DEFAULT_CHAT_MODEL = "gpt-4o-mini"


@dataclass
class ChatHandle:
    """Client-side conversation state replayed on every streamed send."""

    instructions: str
    history: List[Dict[str, Any]] = field(default_factory=list)


class OpenAIPlantCapability:
    """Analyze plant images and hold follow-up conversations with OpenAI."""

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        analysis_model: str = DEFAULT_ANALYSIS_MODEL,
        chat_model: str = DEFAULT_CHAT_MODEL,
    ) -> None:
        """Initialize the capability with an OpenAI async client."""
        if client is None:
            raise ValueError("OpenAI client must be provided.")
        self.client = client
        self.analysis_model = analysis_model
        self.chat_model = chat_model

    async def analyze_image(self, instruction: str, image: EncodedPayload) -> str:
        """Send one instruction plus one image and return the answer text."""
        try:
            response = await self.client.responses.create(
                model=self.analysis_model,
                input=build_analysis_inputs(instruction, image),
            )
        except Exception as exc:
            logging.error("Error during OpenAI Responses API call: %s", exc)
            raise

        usage = extract_usage(response)
        logging.info(
            "Image analysis finished (input_tokens=%s, output_tokens=%s)",
            usage["input_tokens"],
            usage["output_tokens"],
        )
        return extract_text(response)

    async def create_session(self, system_instruction: str, seed_history: List[Dict[str, Any]]) -> ChatHandle:
        """Return a chat handle primed with `seed_history`.

        Raises:
            ValueError: If the seed is empty or carries an undecodable image.
        """
        if not seed_history:
            raise ValueError("Seed history must contain at least one message.")
        for message in seed_history:
            content = message.get("content")
            if not isinstance(content, list):
                continue
            for part in content:
                if part.get("type") == "input_image":
                    verify_image_bytes(decode_data_url(part.get("image_url") or ""))
        return ChatHandle(instructions=system_instruction, history=list(seed_history))

    async def stream_send(self, handle: ChatHandle, text: str) -> AsyncIterator[str]:
        """Stream the assistant reply to `text`, recording the exchange on success.

        The user message is only kept in the handle history once the reply
        completes, so a failed send can be retried cleanly.
        """
        user_message = build_user_message(text)
        stream = await self.client.responses.create(
            model=self.chat_model,
            instructions=handle.instructions,
            input=handle.history + [user_message],
            stream=True,
        )
        reply: List[str] = []
        async with stream:
            async for event in stream:
                delta = extract_delta(event)
                if delta:
                    reply.append(delta)
                    yield delta
        handle.history.extend([user_message, build_assistant_message("".join(reply))])
