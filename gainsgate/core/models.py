"""Request-scoped transport models."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImagePart(BaseModel):
    type: Literal["image_url"] = "image_url"
    url: str


ContentPart = Annotated[Union[TextPart, ImagePart], Field(discriminator="type")]


class TextContent(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class PartsContent(BaseModel):
    kind: Literal["parts"] = "parts"
    parts: list[ContentPart] = Field(default_factory=list)


MessageContent = Annotated[Union[TextContent, PartsContent], Field(discriminator="kind")]


class IncomingMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: MessageContent


class OutgoingChatRequest(BaseModel):
    model: str
    messages: list[dict[str, Any]] = Field(default_factory=list)
    temperature: float = 0.7
    max_tokens: int = 1000

    def to_payload(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": self.messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }


class ChatReply(BaseModel):
    text: str

    def to_result(self) -> dict[str, str]:
        return {"reply": self.text}


class CallerIdentity(BaseModel):
    uid: str
    claims: dict = Field(default_factory=dict)
