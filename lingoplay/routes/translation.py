from flask import Blueprint, request, jsonify
from lingoplay.services.translation_service import get_translation_cascade
from lingoplay.utils.errors import ValidationError
from lingoplay.utils.input_validation import validate_translate_text, validate_lang_code
import logging

translation_bp = Blueprint('translation', __name__)
logger = logging.getLogger('lingoplay')

# Rate limiter - set after blueprint registration
limiter = None


def init_limiter(app_limiter):
    """Initialize rate limiter for this blueprint."""
    global limiter
    limiter = app_limiter
    app_limiter.limit("60 per minute")(translate_text)


@translation_bp.route('/api/translate', methods=['POST'])
async def translate_text():
    """
    Translate a single piece of text.

    Rate limit: 60 requests/minute

    Never fails because providers are down: the worst case is the original
    text with success=false.
    """
    data = request.get_json(silent=True) or {}
    text = data.get('text')
    target_lang = data.get('targetLang') or 'ja'
    source_lang = data.get('sourceLang') or 'auto'

    try:
        validate_translate_text(text)
        if not validate_lang_code(target_lang):
            raise ValidationError('Invalid target language', field='targetLang')
        if not validate_lang_code(source_lang, allow_auto=True):
            raise ValidationError('Invalid source language', field='sourceLang')
    except ValidationError as e:
        return jsonify({'error': str(e), 'field': e.field}), 400

    logger.info(f"[TRANSLATE] Request {source_lang} -> {target_lang}: '{text[:100]}'")
    try:
        result = await get_translation_cascade().translate_detailed(text, source_lang, target_lang)
    except Exception:
        logger.exception("Translation API failed")
        return jsonify({'error': 'Translation failed'}), 500
    return jsonify(result.to_dict())
