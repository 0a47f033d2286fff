"""Description: One-shot plant disease analysis of a single image."""

import logging
import time

from models.diagnosis_record import DiagnosisRecord
from models.image_resource import ImageResource
from services.errors import AnalysisServiceError, EmptyResponseError
from services.openai.media_inputs import encode_image
from services.openai.prompts import ANALYSIS_INSTRUCTION


class AnalysisClient:
    """Turn a plant image into a textual disease diagnosis.

    Each call makes exactly one request; retrying is left to the caller.
    """

    def __init__(self, capability, instruction: str = ANALYSIS_INSTRUCTION) -> None:
        if capability is None:
            raise ValueError("AI capability must be provided.")
        self.capability = capability
        self.instruction = instruction

    async def analyze(self, image: ImageResource) -> str:
        """Return the diagnosis text for `image`.

        Raises:
            ImageReadError: If the image cannot be read.
            EmptyResponseError: If the service answers without text.
            AnalysisServiceError: On any transport or service failure.
        """
        payload = await encode_image(image)
        start_time = time.time()
        try:
            text = await self.capability.analyze_image(self.instruction, payload)
        except Exception as exc:
            logging.error("Error analyzing plant image %s: %s", image.filename, exc)
            detail = str(exc) or "An unexpected API error occurred."
            raise AnalysisServiceError(f"Failed to analyze image: {detail}") from exc

        if not text or not text.strip():
            logging.error("Empty analysis response received for %s.", image.filename)
            raise EmptyResponseError()
        logging.info("Analyzed %s in %.2fs", image.filename, time.time() - start_time)
        return text

    async def diagnose(self, image: ImageResource) -> DiagnosisRecord:
        """Analyze `image` and mint a new record with a fresh identity."""
        text = await self.analyze(image)
        return DiagnosisRecord(source_image=image, diagnosis_text=text)
