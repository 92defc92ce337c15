import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///gridlock.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Browser origins allowed to call the store (comma separated)
    CORS_ORIGINS = [o for o in os.environ.get(
        'CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173'
    ).split(',') if o]
    # Client timers (milliseconds)
    HEARTBEAT_INTERVAL_MS = int(os.environ.get('HEARTBEAT_INTERVAL_MS', '1000'))
    LIVENESS_CHECK_INTERVAL_MS = int(os.environ.get('LIVENESS_CHECK_INTERVAL_MS', '500'))
    # Upper bound for ?limit= on match queries
    MATCH_QUERY_LIMIT_MAX = int(os.environ.get('MATCH_QUERY_LIMIT_MAX', '20'))
