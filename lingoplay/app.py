from flask import Flask, jsonify
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from dotenv import load_dotenv

# Load environment variables from .env file before config is read
load_dotenv()

from lingoplay.config import (
    LOG_LEVEL, LOG_JSON, LOG_FILE, CACHE_BACKEND, CACHE_TTL_HOURS,
    RATE_LIMIT_DEFAULT, RATE_LIMIT_STORAGE_URI, COOKIES_FILE, YOUTUBE_API_KEY,
)
from lingoplay.utils.logging_utils import setup_logging, setup_request_id_middleware

logger = setup_logging(
    level=LOG_LEVEL,
    json_format=LOG_JSON,
    log_file=LOG_FILE
)

from lingoplay.routes import health, subtitles, translation, speech, youtube


def create_app(config: dict = None) -> Flask:
    app = Flask(__name__)
    if config:
        app.config.update(config)
    CORS(app)

    limiter = Limiter(
        get_remote_address,
        app=app,
        default_limits=[RATE_LIMIT_DEFAULT],
        storage_uri=RATE_LIMIT_STORAGE_URI,
    )

    setup_request_id_middleware(app)

    app.register_blueprint(health.health_bp)
    app.register_blueprint(subtitles.subtitles_bp)
    app.register_blueprint(translation.translation_bp)
    app.register_blueprint(speech.speech_bp)
    app.register_blueprint(youtube.youtube_bp)

    translation.init_limiter(limiter)
    speech.init_limiter(limiter)

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify({'error': 'Rate limit exceeded', 'details': str(e.description)}), 429

    logger.info(
        f"Server Configuration: cache={CACHE_BACKEND} ttl={CACHE_TTL_HOURS}h, "
        f"Cookies={'Yes' if COOKIES_FILE else 'No'}, Search={'Yes' if YOUTUBE_API_KEY else 'No'}"
    )
    return app


app = create_app()


# =============================================================================
# Main
# =============================================================================

if __name__ == '__main__':
    from lingoplay.services.cache_service import start_cache_scheduler
    start_cache_scheduler()
    app.run(host='0.0.0.0', port=5001, debug=False)
