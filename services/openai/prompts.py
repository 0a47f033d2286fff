"""Fixed prompts and canned chat messages for plant disease diagnosis."""

ANALYSIS_INSTRUCTION = (
    "Analyze this image of a plant and identify any diseases present. "
    "Provide a brief description of the disease and potential remedies."
)

CHAT_SYSTEM_INSTRUCTION = (
    "You are a helpful assistant specialized in plant diseases. "
    "Answer questions based on the previously provided image context and its initial analysis. "
    "Be concise and informative."
)

SEED_FRAMING = "I uploaded this image of a plant for disease detection. Here is the initial analysis I received:"

GREETING_NO_CONTEXT = "Hello! Upload and analyze an image first, then I can help you with more questions about it."
GREETING_READY = "Hello! I'm ready to answer more questions about the plant in the image you just analyzed."
PRIMING_FAILED_MESSAGE = "Failed to start chat. Please try again."
STREAM_APOLOGY = "Sorry, I couldn't process that. Please try again."
