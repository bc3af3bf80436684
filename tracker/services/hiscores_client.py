"""
Hiscores client.

Fetches a player's current stats from the upstream hiscores API with a
per-request timeout and a fixed retry budget. A 404 means the player does
not exist and is returned immediately; malformed payloads are never retried.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, Union
from urllib.parse import quote

import aiohttp

from tracker.config import Config
from tracker.data_models.snapshot import PlayerNotFound, SkillRecord, parse_stats_payload
from tracker.utils.exceptions import FetchError, ParseError
from tracker.utils.logger import setup_logger

logger = setup_logger(__name__)

FetchResult = Union[List[SkillRecord], PlayerNotFound]


def username_variants(username: str) -> List[str]:
    """Alternate spellings tried for a username, most literal first, without duplicates."""
    candidates = [
        username,
        username.lower(),
        username.replace(' ', '_'),
        username.lower().replace(' ', '_'),
        ''.join(username.split()),
        ''.join(username.lower().split()),
    ]
    return list(dict.fromkeys(candidates))


class HiscoresClient:
    """Async client for the hiscores player endpoint."""
    
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        retry_attempts: Optional[int] = None,
        retry_delay_seconds: Optional[float] = None,
        try_username_variants: Optional[bool] = None,
        variant_delay_seconds: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.base_url = (base_url or Config.HISCORES_BASE_URL).rstrip('/')
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else Config.REQUEST_TIMEOUT_SECONDS
        self.retry_attempts = retry_attempts if retry_attempts is not None else Config.RETRY_ATTEMPTS
        self.retry_delay_seconds = (
            retry_delay_seconds if retry_delay_seconds is not None else Config.RETRY_DELAY_SECONDS
        )
        self.try_username_variants = (
            try_username_variants if try_username_variants is not None else Config.TRY_USERNAME_VARIANTS
        )
        self.variant_delay_seconds = (
            variant_delay_seconds if variant_delay_seconds is not None else Config.USERNAME_VARIANT_DELAY_SECONDS
        )
        self._session = session
        self._owns_session = session is None
        self._sleep = sleep
        
        if self.retry_attempts < 1:
            raise ValueError("retry_attempts must be at least 1")
    
    async def __aenter__(self) -> 'HiscoresClient':
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={
                    'User-Agent': Config.HISCORES_USER_AGENT,
                    'Accept': 'application/json',
                }
            )
        return self
    
    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
    
    async def close(self) -> None:
        """Close the HTTP session if this client created it"""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
    
    def player_url(self, username: str) -> str:
        return f"{self.base_url}/player/{quote(username, safe='')}"
    
    async def fetch_stats(self, username: str) -> FetchResult:
        """
        Fetch current stats for a player.
        
        Args:
            username: Player name as tracked
            
        Returns:
            Skill records on success, PlayerNotFound if the source has no such player
            
        Raises:
            FetchError: If every attempt failed with a timeout, network error or non-2xx status
            ParseError: If the source answered with a payload that fails validation.
                With username variants enabled, the last error is raised only when
                no spelling succeeds
        """
        if not self.try_username_variants:
            return await self._fetch_with_retry(username)
        
        variants = username_variants(username)
        last_error: Optional[Union[FetchError, ParseError]] = None
        for index, variant in enumerate(variants):
            if index > 0:
                await self._sleep(self.variant_delay_seconds)
            try:
                result = await self._fetch_with_retry(variant)
            except (FetchError, ParseError) as e:
                logger.warning(f"Lookup of '{variant}' failed: {e}")
                last_error = e
                continue
            
            if not isinstance(result, PlayerNotFound):
                if variant != username:
                    logger.info(f"Found '{username}' as '{variant}'")
                return result
        
        if last_error is not None:
            raise last_error
        return PlayerNotFound(username)
    
    async def _fetch_with_retry(self, username: str) -> FetchResult:
        if self._session is None:
            raise RuntimeError("HiscoresClient must be used as an async context manager")
        
        url = self.player_url(username)
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        reason = None
        
        for attempt in range(1, self.retry_attempts + 1):
            logger.debug(f"GET {url} (attempt {attempt}/{self.retry_attempts})")
            try:
                async with self._session.get(url, timeout=timeout) as response:
                    if response.status == 404:
                        return PlayerNotFound(username)
                    
                    if 200 <= response.status < 300:
                        try:
                            payload = await response.json(content_type=None)
                        except ValueError as e:
                            raise ParseError(username, f"invalid JSON: {e}") from e
                        try:
                            return parse_stats_payload(payload)
                        except ValueError as e:
                            raise ParseError(username, str(e)) from e
                    
                    reason = f"HTTP {response.status}"
            except asyncio.TimeoutError:
                reason = f"timed out after {self.timeout_seconds}s"
            except aiohttp.ClientError as e:
                reason = f"{type(e).__name__}: {e}"
            
            if attempt < self.retry_attempts:
                logger.warning(
                    f"Fetch for {username} failed ({reason}), "
                    f"retrying in {self.retry_delay_seconds}s..."
                )
                await self._sleep(self.retry_delay_seconds)
        
        raise FetchError(username, self.retry_attempts, reason)
