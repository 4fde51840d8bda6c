"""Assistant conversation history, kept in the `chatHistory` blob."""

from receiptlens.models.chat import ChatMessage
from receiptlens.services.storage import JsonBlobRepository


class ChatHistory(JsonBlobRepository):

    key = "chatHistory"

    def _load(self):
        snapshot = self._snapshot()
        return snapshot, self._decode_list(snapshot.value, ChatMessage) or []

    @staticmethod
    def _encode(messages: list[ChatMessage]) -> list[dict]:
        return [
            m.model_dump(mode="json", by_alias=True, exclude_none=True)
            for m in messages
        ]

    def save(self, messages: list[ChatMessage]) -> None:
        snapshot = self._snapshot()
        self._write(self._encode(messages), snapshot)

    def append(self, message: ChatMessage) -> list[ChatMessage]:
        snapshot = self._snapshot()
        messages, unreadable = self._partition_list(snapshot.value, ChatMessage) or ([], [])
        messages.append(message)
        self._write(unreadable + self._encode(messages), snapshot)
        return messages

    def clear(self) -> None:
        self._remove()

    def list(self) -> list[ChatMessage]:
        return self._load()[1]
