import os

# Base paths
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
CACHE_DIR = os.getenv('CACHE_DIR', os.path.join(BASE_DIR, 'cache'))

# Cache
CACHE_BACKEND = os.getenv('CACHE_BACKEND', 'memory')  # memory|file
CACHE_TTL_HOURS = float(os.getenv('CACHE_TTL_HOURS', '24'))
CACHE_TTL_SECONDS = CACHE_TTL_HOURS * 3600
CACHE_CLEANUP_INTERVAL_MINUTES = float(os.getenv('CACHE_CLEANUP_INTERVAL_MINUTES', '30'))

# Logging
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_JSON = os.getenv('LOG_JSON', 'false').lower() == 'true'
LOG_FILE = os.getenv('LOG_FILE')

# Upstream timeouts (seconds), one budget per operation class
TRANSCRIPT_TIMEOUT = float(os.getenv('TRANSCRIPT_TIMEOUT', '300'))
TRANSLATION_TIMEOUT = float(os.getenv('TRANSLATION_TIMEOUT', '10'))
SPEECH_TIMEOUT = float(os.getenv('SPEECH_TIMEOUT', '300'))
SEARCH_TIMEOUT = float(os.getenv('SEARCH_TIMEOUT', '30'))
CAPTION_DOWNLOAD_TIMEOUT = float(os.getenv('CAPTION_DOWNLOAD_TIMEOUT', '30'))

# Translation batching
TRANSLATION_BATCH_SIZE = int(os.getenv('TRANSLATION_BATCH_SIZE', '5'))
TRANSLATION_BATCH_DELAY = float(os.getenv('TRANSLATION_BATCH_DELAY', '0.5'))
MAX_TRANSLATE_TEXT_LENGTH = int(os.getenv('MAX_TRANSLATE_TEXT_LENGTH', '5000'))

# Language discovery
PROBE_MIN_LANGUAGES = int(os.getenv('PROBE_MIN_LANGUAGES', '3'))

# Speech recognition
MAX_AUDIO_SIZE_MB = int(os.getenv('MAX_AUDIO_SIZE_MB', '25'))
MAX_AUDIO_SIZE_BYTES = MAX_AUDIO_SIZE_MB * 1024 * 1024
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')
WHISPER_API_MODEL = os.getenv('WHISPER_API_MODEL', 'whisper-1')
GOOGLE_CLOUD_API_KEY = os.getenv('GOOGLE_CLOUD_API_KEY')

# YouTube
YOUTUBE_API_KEY = os.getenv('YOUTUBE_API_KEY')
COOKIES_FILE = os.getenv('COOKIES_FILE')  # Path to cookies.txt for YouTube auth

# Rate limiting
RATE_LIMIT_DEFAULT = os.getenv('RATE_LIMIT_DEFAULT', '200 per minute')
RATE_LIMIT_STORAGE_URI = os.getenv('RATE_LIMIT_STORAGE_URI', 'memory://')

# Languages offered by the speech-to-text endpoint
SPEECH_LANGUAGES = ['en', 'ja', 'es', 'fr', 'de', 'ko', 'zh']
