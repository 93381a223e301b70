import os


def _database_url():
    # Prioritize 'DATABASE_URL' from environment (Docker/Render)
    # Fallback to local SQLite if no URL is found
    database_url = os.environ.get('DATABASE_URL')
    if not database_url:
        return 'sqlite:///educonnect.db'
    # SQLAlchemy requires 'postgresql://' instead of 'postgres://'
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)
    return database_url


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev_secret_key_fallback')

    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Generative AI
    GEMINI_API_KEY = os.environ.get('GEMINI_API_KEY')
    GEMINI_API_BASE = os.environ.get('GEMINI_API_BASE', 'https://generativelanguage.googleapis.com')
    GROQ_API_KEY = os.environ.get('GROQ_API_KEY')
    AI_REQUEST_TIMEOUT = float(os.environ.get('AI_REQUEST_TIMEOUT', '60'))

    # Alternate client builds call the API from their own origin
    CORS_ORIGINS = [o.strip() for o in os.environ.get('CORS_ORIGINS', '*').split(',') if o.strip()]

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
