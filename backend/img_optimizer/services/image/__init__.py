"""Image capabilities: source fetching and pixel codec."""

from img_optimizer.services.image.codec import Codec, DecodedImage, PillowCodec
from img_optimizer.services.image.fetcher import FetchedSource, Fetcher, FetchLimits, HttpxFetcher

__all__ = [
    "Codec",
    "DecodedImage",
    "FetchLimits",
    "FetchedSource",
    "Fetcher",
    "HttpxFetcher",
    "PillowCodec",
]
