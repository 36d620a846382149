import aiohttp, asyncio
from loguru import logger
from typing import Optional, Dict, Any
from contextlib import asynccontextmanager

from .sources.base import ProviderError, ProviderTimeoutError

DEFAULT_TIMEOUT_SECONDS = 15.0


@asynccontextmanager
async def http_session(timeout: Optional[float] = None):
    client_timeout = aiohttp.ClientTimeout(total=timeout or DEFAULT_TIMEOUT_SECONDS)
    async with aiohttp.ClientSession(timeout=client_timeout) as s:
        yield s


async def _read_json(r: aiohttp.ClientResponse) -> Any:
    if r.status >= 400:
        raise ProviderError(f"HTTP {r.status} {r.reason or ''}".strip(), status=r.status)
    try:
        return await r.json(content_type=None)
    except ValueError as e:
        raise ProviderError(f"malformed payload: {e}") from e


@asynccontextmanager
async def _translate_errors(timeout: Optional[float]):
    # URLs may embed API keys, so they never go into messages
    try:
        yield
    except asyncio.TimeoutError as e:
        raise ProviderTimeoutError(f"timeout after {timeout or DEFAULT_TIMEOUT_SECONDS:g}s") from e
    except aiohttp.ClientError as e:
        raise ProviderError(f"connection error: {e.__class__.__name__}") from e


async def get_json(url: str, params: Optional[Dict[str, Any]]=None, headers: Optional[Dict[str,str]]=None,
                   timeout: Optional[float] = None):
    async with _translate_errors(timeout):
        async with http_session(timeout) as s:
            async with s.get(url, params=params, headers=headers) as r:
                logger.trace(f"GET {r.url.host} -> {r.status}")
                return await _read_json(r)


async def post_json(url: str, payload: Any, headers: Optional[Dict[str,str]]=None,
                    timeout: Optional[float] = None):
    async with _translate_errors(timeout):
        async with http_session(timeout) as s:
            async with s.post(url, json=payload, headers=headers) as r:
                logger.trace(f"POST {r.url.host} -> {r.status}")
                return await _read_json(r)
