from flask import Blueprint, jsonify, Response
from lingoplay import __version__
from lingoplay.config import CACHE_BACKEND, YOUTUBE_API_KEY
from lingoplay.services.speech_service import get_speech_service

health_bp = Blueprint('health', __name__)


@health_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint for monitoring."""
    return jsonify({
        'status': 'ok',
        'service': 'lingoplay-backend',
        'version': __version__,
        'features': {
            'speechToText': any(p['enabled'] for p in get_speech_service().provider_status()),
            'youtubeSearch': bool(YOUTUBE_API_KEY),
        },
        'cache': CACHE_BACKEND,
    })


@health_bp.route('/ping', methods=['GET'])
def ping():
    """Liveness probe for load balancers."""
    return Response(status=200)
