from .language import LanguageModel
from .embedding import EmbedOptions, EmbedResponse, EmbedUsage, EmbeddingModel
from .image import ImageFileInput, ImageOptions, ImageResponse, ImageUrlInput, ImageWarning, ImageModel
