"""Asynchronous resource loaders with caching and revalidation."""

from fetching.cache import CacheSnapshot, ResourceCache
from fetching.caching_loader import CachingResourceLoader
from fetching.config import CachingOptions, get_settings
from fetching.exceptions import FetchError, ResponseError, TransportError
from fetching.http import JsonFetcher, fetch_json
from fetching.loader import ResourceLoader
from fetching.revalidate import RevalidatingFetchCache
from fetching.state import Err, ErrorInfo, KeyChanged, Ok, ResourceState, Result
from fetching.triggers import RevalidationTriggers

__all__ = [
    "CacheSnapshot",
    "CachingOptions",
    "CachingResourceLoader",
    "Err",
    "ErrorInfo",
    "FetchError",
    "JsonFetcher",
    "KeyChanged",
    "Ok",
    "ResourceCache",
    "ResourceLoader",
    "ResourceState",
    "ResponseError",
    "Result",
    "RevalidatingFetchCache",
    "RevalidationTriggers",
    "TransportError",
    "fetch_json",
    "get_settings",
]
