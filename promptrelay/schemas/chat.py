from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Literal, Optional


class ProviderConfig(BaseModel):
    """A template-driven provider as stored by the settings layer."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    curl: str
    streaming: bool = False
    response_content_path: str = Field(default="", alias="responseContentPath")


class SelectedProvider(BaseModel):
    # variable names are kept as given; lookups upper-case them
    provider: str
    variables: Dict[str, str] = Field(default_factory=dict)


class Message(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str = ""
    images: List[str] = Field(default_factory=list)  # base64 payloads


class RequestDescriptor(BaseModel):
    method: str = "POST"
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Any = None  # parsed JSON value, raw string, or None


class ChatRequest(BaseModel):
    provider: str = Field(min_length=1)
    variables: Dict[str, str] = Field(default_factory=dict)
    message: str = Field(min_length=1, max_length=32000)
    system_prompt: Optional[str] = None
    history: List[Message] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    conversation_id: Optional[str] = None


class ProviderInfo(BaseModel):
    id: str
    streaming: bool
    required_variables: List[str]
    supports_images: bool


class AgentInfo(BaseModel):
    id: str
    installed: bool
