from flask import Blueprint, request, jsonify
from lingoplay.services.subtitle_service import get_subtitle_resolver
from lingoplay.utils.input_validation import validate_video_id, validate_lang_code
import logging

subtitles_bp = Blueprint('subtitles', __name__)
logger = logging.getLogger('lingoplay')


def _validate(video_id, lang=None):
    if not validate_video_id(video_id):
        return jsonify({'error': 'Invalid video_id format'}), 400
    if lang is not None and lang != 'all' and not validate_lang_code(lang):
        return jsonify({'error': 'Invalid language code'}), 400
    return None


@subtitles_bp.route('/api/subtitles/<video_id>', methods=['GET'])
async def get_subtitles(video_id):
    """
    Resolve subtitles for a video.

    lang=all (default) returns the dual-language bundle; any other tag
    returns that single language, translating English when Japanese is
    requested but missing.
    """
    lang = request.args.get('lang', 'all')
    invalid = _validate(video_id, lang)
    if invalid:
        return invalid

    resolver = get_subtitle_resolver()
    try:
        if lang == 'all':
            bundle = await resolver.resolve(video_id)
            return jsonify(bundle.to_dict())
        result = await resolver.resolve_language(video_id, lang)
        return jsonify(result.to_dict())
    except Exception:
        logger.exception(f"Subtitle resolution failed for {video_id}")
        return jsonify({'error': 'Failed to load subtitles', 'videoId': video_id}), 500


@subtitles_bp.route('/api/subtitles/<video_id>', methods=['DELETE'])
def delete_subtitles(video_id):
    """Invalidate cached subtitles for one language, or the whole video."""
    lang = request.args.get('lang')
    invalid = _validate(video_id, lang)
    if invalid:
        return invalid

    try:
        removed = get_subtitle_resolver().clear_cache(video_id, None if lang in (None, '', 'all') else lang)
    except OSError:
        logger.exception(f"Cache invalidation failed for {video_id}")
        return jsonify({'error': 'Failed to clear cache'}), 500
    return jsonify({'message': 'Cache cleared', 'videoId': video_id, 'removed': removed})


@subtitles_bp.route('/api/subtitles/<video_id>/debug', methods=['GET'])
async def debug_subtitles(video_id):
    """Raw caption listing and short samples, bypassing every cache."""
    invalid = _validate(video_id)
    if invalid:
        return invalid

    try:
        return jsonify(await get_subtitle_resolver().debug(video_id))
    except Exception:
        logger.exception(f"Debug listing failed for {video_id}")
        return jsonify({'error': 'Debug listing failed', 'videoId': video_id}), 500
