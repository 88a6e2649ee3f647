"""
Chat Service

Thin proxy to the Gemini generateContent REST API for the cattle
assistant. Retries with exponential backoff and maps the final failure to
an HTTP status the route can return as-is.
"""

import time
from datetime import datetime, timezone
from typing import Dict, Optional

import requests

from ..config import (
    GEMINI_API_KEY, GEMINI_MODEL, GEMINI_API_URL,
    CHAT_MAX_RETRIES, CHAT_BASE_DELAY_SEC, CHAT_MAX_MESSAGE_LENGTH, CHAT_TIMEOUT_SEC
)
from ..errors import ChatError
from ..logger import log

PROMPT_TEMPLATE = """You are a helpful cattle analysis assistant. Answer briefly and clearly.

User question: {message}

Provide a concise, helpful response about cattle analysis, ATC scores, or farming. Keep it under 100 words."""

GENERATION_CONFIG = {
    'temperature': 0.7,
    'topK': 20,
    'topP': 0.8,
    'maxOutputTokens': 150,
}

SAFETY_SETTINGS = [
    {'category': 'HARM_CATEGORY_HARASSMENT', 'threshold': 'BLOCK_ONLY_HIGH'},
    {'category': 'HARM_CATEGORY_HATE_SPEECH', 'threshold': 'BLOCK_ONLY_HIGH'},
]

DEFAULT_FAILURE_MESSAGE = "I apologize, but I'm experiencing technical difficulties. Please try again in a moment."

# (substrings, status, user message), first match wins
FAILURE_RULES = [
    (('API_KEY', 'authentication'), 503,
     'AI service authentication issue. Please contact support.'),
    (('quota', 'limit', '429'), 429,
     'API quota exceeded. Please try again in a few minutes.'),
    (('blocked', 'safety'), 400,
     "I can't process that request. Please ask about cattle analysis topics."),
    (('Empty response',), 502,
     "The AI didn't provide a response. Please rephrase your question and try again."),
]


def classify_failure(error_message: str):
    """Map a raw failure message to (status_code, user-facing message)."""
    for needles, status, user_message in FAILURE_RULES:
        if any(n in error_message for n in needles):
            return status, user_message
    return 500, DEFAULT_FAILURE_MESSAGE


class ChatService:
    def __init__(
        self,
        api_key: Optional[str] = GEMINI_API_KEY,
        model: str = GEMINI_MODEL,
        max_retries: int = CHAT_MAX_RETRIES,
        base_delay: float = CHAT_BASE_DELAY_SEC
    ):
        self.api_key = api_key
        self.model = model
        self.max_retries = max_retries
        self.base_delay = base_delay

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def reply(self, message: Optional[str]) -> Dict:
        """
        Ask the assistant a question.

        Returns:
            {'reply', 'timestamp', 'attempt'}

        Raises:
            ChatError: unavailable, invalid message, or all attempts failed
        """
        if not self.available:
            raise ChatError(
                'AI chatbot is currently unavailable. Please make sure GEMINI_API_KEY is set.',
                status_code=503
            )

        if not message or not message.strip():
            raise ChatError('Message is required', status_code=400)

        if len(message) > CHAT_MAX_MESSAGE_LENGTH:
            raise ChatError(
                f'Message too long. Please limit to {CHAT_MAX_MESSAGE_LENGTH} characters.',
                status_code=400
            )

        prompt = PROMPT_TEMPLATE.format(message=message.strip())
        last_error = None

        for attempt in range(1, self.max_retries + 1):
            try:
                log.info('chat', 'Chat attempt', attempt=attempt, preview=message[:30])
                reply = self._generate(prompt)
                log.info('chat', 'Chat success', attempt=attempt)
                return {
                    'reply': reply,
                    'timestamp': datetime.now(timezone.utc).isoformat(),
                    'attempt': attempt,
                }
            except (requests.exceptions.RequestException, ValueError, RuntimeError) as e:
                last_error = str(e)
                log.error('chat', 'Chat attempt failed', attempt=attempt, error=last_error)

            if attempt < self.max_retries:
                delay = self.base_delay * (2 ** (attempt - 1))
                log.info('chat', 'Waiting before retry', delay_sec=delay)
                time.sleep(delay)

        status, user_message = classify_failure(last_error or '')
        raise ChatError(user_message, status_code=status,
                        attempts=self.max_retries, detail=last_error)

    def _generate(self, prompt: str) -> str:
        response = requests.post(
            GEMINI_API_URL.format(model=self.model),
            params={'key': self.api_key},
            json={
                'contents': [{'parts': [{'text': prompt}]}],
                'generationConfig': GENERATION_CONFIG,
                'safetySettings': SAFETY_SETTINGS,
            },
            timeout=CHAT_TIMEOUT_SEC
        )

        if response.status_code != 200:
            raise RuntimeError(f'Gemini API error {response.status_code}: {response.text[:200]}')

        data = response.json()

        block_reason = (data.get('promptFeedback') or {}).get('blockReason')
        if block_reason:
            raise RuntimeError(f'Content blocked: {block_reason}')

        candidates = data.get('candidates') or []
        parts = candidates[0].get('content', {}).get('parts', []) if candidates else []
        text = ''.join(part.get('text', '') for part in parts).strip()

        if not text:
            raise RuntimeError('Empty response from API')

        return text


# Global chat service instance
chat_service = ChatService()
