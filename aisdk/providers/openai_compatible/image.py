import base64
import binascii
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from ...exceptions import ProviderError, SerializationError
from ...models.image import ImageFileInput, ImageOptions, ImageResponse, ImageResponseMeta, ImageUsage, ImageWarning
from ...options import build_image_options
from ...transport.base import MultipartForm
from ...types import Base64Data, BytesData
from ...utils import build_url, dumps_compact, lowercase_headers
from ..base import build_headers, get_bytes, post_json, post_multipart
from .options import OpenAICompatibleConfig

logger = logging.getLogger("aisdk.providers.openai_compatible")

IMAGE_SCOPE = "openai"


def _split_image_options(provider_options) -> Tuple[Optional[str], Dict[str, Any]]:
    scoped = (provider_options or {}).get(IMAGE_SCOPE)
    if not isinstance(scoped, dict):
        return None, {}
    user = scoped.get("user") if isinstance(scoped.get("user"), str) else None
    return user, {k: v for k, v in scoped.items() if k != "user"}


def _filename_for(base: str, index: Optional[int], media_type: str) -> str:
    name = base if index is None else f"{base}-{index}"
    ext = media_type.split("/", 1)[1] if "/" in media_type else ""
    return f"{name}.{ext}" if ext else name


class OpenAICompatibleImageModel:
    """
    Image generation. Requests with input files go to `/images/edits` as
    multipart forms; everything else is a JSON `/images/generations` call.
    """

    def __init__(self, model_id: str, config: OpenAICompatibleConfig):
        self._model_id = model_id
        self.config = config

    def specification_version(self) -> str:
        return "v2"

    def provider_name(self) -> str:
        return "openai-compatible"

    def model_id(self) -> str:
        return self._model_id

    def max_images_per_call(self) -> Optional[int]:
        return 10

    def _url(self, path: str) -> str:
        return build_url(self.config.base_url, path, self.config.query_params)

    def warnings_for_options(self, options: ImageOptions) -> List[ImageWarning]:
        warnings = []
        if options.aspect_ratio is not None:
            warnings.append(ImageWarning(type="unsupported", feature="aspectRatio", details="This model does not support aspect ratio. Use `size` instead."))
        if options.seed is not None:
            warnings.append(ImageWarning(type="unsupported", feature="seed"))
        return warnings

    def build_generation_body(self, options: ImageOptions) -> Dict[str, Any]:
        user, extras = _split_image_options(options.provider_options)
        body: Dict[str, Any] = {"model": self._model_id}
        if options.prompt is not None:
            body["prompt"] = options.prompt
        body["n"] = options.n
        if options.size is not None:
            body["size"] = options.size
        if user is not None:
            body["user"] = user
        body.update(extras)
        body["response_format"] = "b64_json"
        return body

    async def _file_part(self, file, base_name: str, index: Optional[int]) -> Tuple[bytes, Optional[str], Optional[str]]:
        if isinstance(file, ImageFileInput):
            if isinstance(file.data, BytesData):
                data = file.data.data
            elif isinstance(file.data, Base64Data):
                try:
                    data = base64.b64decode(file.data.base64, validate=True)
                except (binascii.Error, ValueError) as e:
                    raise ProviderError(400, "invalid base64 image data") from e
            else:
                data, _ = await get_bytes(self.config.http, file.data.url, {}, self.config.transport_cfg)
            return data, _filename_for(base_name, index, file.media_type), file.media_type

        data, headers = await get_bytes(self.config.http, file.url, {}, self.config.transport_cfg)
        return data, None, lowercase_headers(headers).get("content-type")

    async def build_edit_form(self, options: ImageOptions) -> MultipartForm:
        user, extras = _split_image_options(options.provider_options)
        form = MultipartForm()
        form.push_text("model", self._model_id)
        if options.prompt is not None:
            form.push_text("prompt", options.prompt)
        form.push_text("n", str(options.n))
        if options.size is not None:
            form.push_text("size", options.size)
        if user is not None:
            form.push_text("user", user)
        for idx, file in enumerate(options.files):
            data, filename, content_type = await self._file_part(file, "image", idx)
            form.push_bytes("image", data, filename, content_type)
        if options.mask is not None:
            data, filename, content_type = await self._file_part(options.mask, "mask", None)
            form.push_bytes("mask", data, filename, content_type)
        for key, value in extras.items():
            form.push_text(key, value if isinstance(value, str) else dumps_compact(value))
        return form

    def _response(self, data: Any, headers: Dict[str, str], warnings: List[ImageWarning], request_body: Any) -> ImageResponse:
        try:
            images = [item["b64_json"] for item in data["data"]]
            usage = ImageUsage.model_validate(data["usage"]) if isinstance(data.get("usage"), dict) else None
        except (KeyError, TypeError, ValidationError) as e:
            raise SerializationError(f"unexpected image response: {e}") from e
        return ImageResponse(
            images=images,
            warnings=warnings,
            provider_metadata=data.get("providerMetadata"),
            response=ImageResponseMeta(
                timestamp_ms=int(time.time() * 1000),
                model_id=self._model_id,
                headers=lowercase_headers(headers) or None,
            ),
            usage=usage,
            response_body=data,
            request_body=request_body,
        )

    async def do_generate(self, options: ImageOptions) -> ImageResponse:
        scope = IMAGE_SCOPE if self.config.provider_scope_name == "openai-compatible" else self.config.provider_scope_name
        options = build_image_options(options, scope, self.config.default_options)
        warnings = self.warnings_for_options(options)

        if options.files:
            form = await self.build_edit_form(options)
            headers = build_headers(self.config.headers, options.headers)
            headers.pop("content-type", None)
            headers.setdefault("accept", "application/json")
            logger.debug(f"Editing {len(options.files)} image(s) with {self._model_id}")
            data, response_headers = await post_multipart(self.config.http, self._url("/images/edits"), headers, form, self.config.transport_cfg)
            return self._response(data, response_headers, warnings, None)

        body = self.build_generation_body(options)
        headers = build_headers({"content-type": "application/json", "accept": "application/json"}, self.config.headers, options.headers)
        data, response_headers = await post_json(self.config.http, self._url("/images/generations"), headers, body, self.config.transport_cfg)
        return self._response(data, response_headers, warnings, body)
