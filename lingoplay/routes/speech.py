from flask import Blueprint, request, jsonify
from lingoplay.config import MAX_AUDIO_SIZE_MB, SPEECH_LANGUAGES
from lingoplay.services.speech_service import get_speech_service
from lingoplay.utils.errors import ValidationError
from lingoplay.utils.input_validation import (
    ALLOWED_AUDIO_TYPES, validate_video_id, validate_lang_code,
)
import logging

speech_bp = Blueprint('speech', __name__)
logger = logging.getLogger('lingoplay')

# Rate limiter - set after blueprint registration
limiter = None


def init_limiter(app_limiter):
    """Initialize rate limiter for this blueprint."""
    global limiter
    limiter = app_limiter
    app_limiter.limit("3 per minute")(speech_to_text)


@speech_bp.route('/api/speech-to-text', methods=['POST'])
async def speech_to_text():
    """
    Generate subtitles from uploaded audio for videos without captions.

    Rate limit: 3 requests/minute

    Multipart fields: audio (file), videoId, language (default 'en').
    """
    audio_file = request.files.get('audio')
    video_id = request.form.get('videoId')
    language = request.form.get('language') or 'en'

    if audio_file is None:
        return jsonify({'error': 'audio file is required'}), 400
    if not video_id:
        return jsonify({'error': 'videoId is required'}), 400
    if not validate_video_id(video_id):
        return jsonify({'error': 'Invalid video_id format'}), 400
    if not validate_lang_code(language):
        return jsonify({'error': 'Invalid language code'}), 400

    audio = audio_file.read()
    logger.info(f"[SPEECH] Request for {video_id}: {audio_file.filename}, {len(audio)} bytes, {audio_file.mimetype}")

    try:
        result = await get_speech_service().transcribe_audio(
            audio, audio_file.mimetype, language=language, video_id=video_id,
            filename=audio_file.filename or 'audio',
        )
    except ValidationError as e:
        return jsonify({'error': str(e), 'field': e.field}), 400
    except Exception:
        logger.exception("Speech recognition failed")
        return jsonify({'error': 'Speech recognition failed'}), 500

    if not result.success:
        return jsonify(result.to_dict()), 503
    return jsonify(result.to_dict())


@speech_bp.route('/api/speech-to-text', methods=['GET'])
def speech_to_text_info():
    """Describe upload constraints and which providers are enabled."""
    return jsonify({
        'supportedFormats': list(ALLOWED_AUDIO_TYPES),
        'maxFileSize': f'{MAX_AUDIO_SIZE_MB}MB',
        'supportedLanguages': SPEECH_LANGUAGES,
        'providers': get_speech_service().provider_status(),
        'fallbackOptions': {'webSpeechAPI': True, 'manualUpload': True},
    })
