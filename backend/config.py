import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///draftroom.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    ALLOWED_ORIGINS = [
        o.strip() for o in os.environ.get(
            'ALLOWED_ORIGINS',
            'http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000',
        ).split(',') if o.strip()
    ]
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Idle rooms are pruned after these ages (days)
    ACTIVE_ROOM_MAX_AGE_DAYS = int(os.environ.get('ACTIVE_ROOM_MAX_AGE_DAYS', '7'))
    COMPLETED_ROOM_MAX_AGE_DAYS = int(os.environ.get('COMPLETED_ROOM_MAX_AGE_DAYS', '30'))
    # Per-room lock wait (sec). 0 waits forever.
    ROOM_LOCK_TIMEOUT_SEC = float(os.environ.get('ROOM_LOCK_TIMEOUT_SEC', '10'))
    # Extra attempts when another writer saved the room between load and save
    ROOM_SAVE_RETRIES = int(os.environ.get('ROOM_SAVE_RETRIES', '3'))
    ROOM_CODE_LENGTH = int(os.environ.get('ROOM_CODE_LENGTH', '6'))
