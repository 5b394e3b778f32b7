from typing import Annotated, Any, Dict, List, Literal, Optional, Protocol, Union

from pydantic import BaseModel, Field

from ..types import DataContent, ProviderMetadata, ProviderOptions


class ImageFileInput(BaseModel):
    type: Literal["file"] = "file"
    media_type: str
    data: DataContent


class ImageUrlInput(BaseModel):
    type: Literal["url"] = "url"
    url: str


ImageInput = Annotated[Union[ImageFileInput, ImageUrlInput], Field(discriminator="type")]


class ImageWarning(BaseModel):
    type: Literal["unsupported", "compatibility", "other"] = "unsupported"
    feature: Optional[str] = None
    details: Optional[str] = None
    message: Optional[str] = None


class ImageUsage(BaseModel):
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


class ImageOptions(BaseModel):
    prompt: Optional[str] = None
    n: int = Field(default=1, ge=1)
    size: Optional[str] = None
    aspect_ratio: Optional[str] = None
    seed: Optional[int] = None
    files: List[ImageInput] = Field(default_factory=list)
    mask: Optional[ImageInput] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    provider_options: ProviderOptions = Field(default_factory=dict)


class ImageResponseMeta(BaseModel):
    timestamp_ms: int
    model_id: str
    headers: Optional[Dict[str, str]] = None


class ImageResponse(BaseModel):
    """`images` holds base64-encoded image payloads."""
    images: List[str] = Field(default_factory=list)
    warnings: List[ImageWarning] = Field(default_factory=list)
    provider_metadata: Optional[ProviderMetadata] = None
    response: ImageResponseMeta
    usage: Optional[ImageUsage] = None
    response_body: Optional[Any] = None
    request_body: Optional[Any] = None


class ImageModel(Protocol):
    def specification_version(self) -> str:
        return "v2"

    def provider_name(self) -> str:
        ...

    def model_id(self) -> str:
        ...

    def max_images_per_call(self) -> Optional[int]:
        return None

    async def do_generate(self, options: ImageOptions) -> ImageResponse:
        ...
