"""
YouTube Data API v3 passthrough for video and channel discovery.
"""

import logging
from typing import Dict, Any, Optional, List

import requests

from lingoplay.config import YOUTUBE_API_KEY, SEARCH_TIMEOUT
from lingoplay.utils.errors import LingoplayError, ErrorKind, UpstreamTimeoutError, UpstreamNetworkError

logger = logging.getLogger('lingoplay')

API_BASE = 'https://www.googleapis.com/youtube/v3'
DEFAULT_MAX_RESULTS = 12
MAX_RESULTS_LIMIT = 50


class SearchNotConfiguredError(LingoplayError):
    """YOUTUBE_API_KEY is not set."""


class YouTubeApiError(LingoplayError):
    """The Data API answered with a non-2xx status."""
    kind = ErrorKind.NETWORK

    def __init__(self, message: str, status_code: int, details: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


def _thumbnail(snippet: Dict[str, Any]) -> Optional[str]:
    thumbnails = snippet.get('thumbnails') or {}
    for size in ('medium', 'default'):
        if thumbnails.get(size, {}).get('url'):
            return thumbnails[size]['url']
    return None


def clamp_max_results(value, default: int = DEFAULT_MAX_RESULTS) -> int:
    try:
        value = int(value)
    except (TypeError, ValueError):
        return default
    return max(1, min(MAX_RESULTS_LIMIT, value))


class YouTubeSearchClient:
    def __init__(self, api_key: Optional[str] = YOUTUBE_API_KEY, timeout: float = SEARCH_TIMEOUT):
        self.api_key = api_key
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _get(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise SearchNotConfiguredError('YouTube API key is not configured')
        params = dict(params, key=self.api_key)
        try:
            res = requests.get(f'{API_BASE}/{endpoint}', params=params, timeout=self.timeout)
        except requests.Timeout as e:
            raise UpstreamTimeoutError(f'YouTube API timed out after {self.timeout:g}s') from e
        except requests.RequestException as e:
            raise UpstreamNetworkError(f'YouTube API request failed: {e}') from e

        try:
            data = res.json()
        except ValueError:
            data = {}
        if res.status_code != 200:
            details = (data.get('error') or {}).get('message') if isinstance(data, dict) else None
            logger.error(f"[SEARCH] YouTube API error {res.status_code}: {details}")
            raise YouTubeApiError('YouTube API request failed', res.status_code, details or 'Unknown error')
        return data

    def search_videos(self, query: str, max_results: int = DEFAULT_MAX_RESULTS,
                      page_token: Optional[str] = None) -> Dict[str, Any]:
        """Search captioned videos, most relevant first."""
        logger.info(f"[SEARCH] Videos: '{query}' (max {max_results})")
        params = {
            'part': 'snippet',
            'q': query,
            'type': 'video',
            'maxResults': max_results,
            'videoCaption': 'closedCaption',
            'order': 'relevance',
        }
        if page_token:
            params['pageToken'] = page_token
        data = self._get('search', params)

        videos = []
        for item in data.get('items') or []:
            snippet = item.get('snippet') or {}
            videos.append({
                'id': (item.get('id') or {}).get('videoId'),
                'title': snippet.get('title'),
                'description': snippet.get('description'),
                'thumbnail': _thumbnail(snippet),
                'channelId': snippet.get('channelId'),
                'channelTitle': snippet.get('channelTitle'),
                'publishedAt': snippet.get('publishedAt'),
            })
        logger.info(f"[SEARCH] Found {len(videos)} videos")
        return {'videos': videos, 'nextPageToken': data.get('nextPageToken')}

    def _channel_details(self, channel_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        """Statistics and custom URLs; best-effort, empty on any failure."""
        if not channel_ids:
            return {}
        try:
            data = self._get('channels', {'part': 'snippet,statistics', 'id': ','.join(channel_ids)})
        except LingoplayError as e:
            logger.info(f"[SEARCH] Skipping channel details: {e}")
            return {}
        return {item.get('id'): item for item in data.get('items') or []}

    def search_channels(self, query: str, max_results: int = DEFAULT_MAX_RESULTS,
                        page_token: Optional[str] = None) -> Dict[str, Any]:
        logger.info(f"[SEARCH] Channels: '{query}' (max {max_results})")
        params = {
            'part': 'snippet',
            'q': query,
            'type': 'channel',
            'maxResults': max_results,
            'order': 'relevance',
        }
        if page_token:
            params['pageToken'] = page_token
        data = self._get('search', params)

        items = data.get('items') or []
        ids = [(item.get('id') or {}).get('channelId') for item in items]
        details = self._channel_details([i for i in ids if i])

        channels = []
        for item, channel_id in zip(items, ids):
            snippet = item.get('snippet') or {}
            detail = details.get(channel_id) or {}
            statistics = detail.get('statistics') or {}
            channels.append({
                'id': channel_id,
                'title': snippet.get('title') or snippet.get('channelTitle'),
                'description': snippet.get('description'),
                'thumbnail': _thumbnail(snippet),
                'subscriberCount': statistics.get('subscriberCount'),
                'videoCount': statistics.get('videoCount'),
                'customUrl': (detail.get('snippet') or {}).get('customUrl'),
            })
        logger.info(f"[SEARCH] Found {len(channels)} channels")
        return {'channels': channels, 'nextPageToken': data.get('nextPageToken')}


_search_client: Optional[YouTubeSearchClient] = None


def get_search_client() -> YouTubeSearchClient:
    global _search_client
    if _search_client is None:
        _search_client = YouTubeSearchClient()
    return _search_client
