from flask import Blueprint, request, jsonify
from lingoplay.services.search_service import (
    get_search_client, clamp_max_results, SearchNotConfiguredError, YouTubeApiError,
)
from lingoplay.utils.errors import LingoplayError
import logging

youtube_bp = Blueprint('youtube', __name__)
logger = logging.getLogger('lingoplay')


def _search(method_name: str):
    query = (request.args.get('q') or '').strip()
    if not query:
        return jsonify({'error': 'Search query is required'}), 400

    client = get_search_client()
    search = getattr(client, method_name)
    try:
        result = search(
            query,
            max_results=clamp_max_results(request.args.get('maxResults')),
            page_token=request.args.get('pageToken'),
        )
    except SearchNotConfiguredError as e:
        logger.error(f"[SEARCH] {e}")
        return jsonify({'error': str(e)}), 500
    except YouTubeApiError as e:
        return jsonify({'error': str(e), 'details': e.details}), e.status_code
    except LingoplayError as e:
        return jsonify({'error': 'YouTube search failed', 'details': str(e)}), 502
    return jsonify(result)


@youtube_bp.route('/api/youtube/search', methods=['GET'])
def search_videos():
    """Search captioned videos."""
    return _search('search_videos')


@youtube_bp.route('/api/youtube/channels/search', methods=['GET'])
def search_channels():
    """Search channels, with subscriber and video counts when available."""
    return _search('search_channels')
