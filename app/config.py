import os


class Config:
    """Base configuration. Shared across all environments."""

    # --- Required ---
    SECRET_KEY = os.environ.get("SECRET_KEY")

    # Handle DATABASE_URL: some PaaS providers (Railway, Heroku) use
    # "postgres://" which SQLAlchemy 1.4+ doesn't accept.
    _db_url = os.environ.get("DATABASE_URL", "")
    if _db_url.startswith("postgres://"):
        _db_url = _db_url.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = _db_url or None

    APP_BASE_URL = os.environ.get("APP_BASE_URL", "http://localhost:5000")

    # --- Identity (Supabase Auth) ---
    SUPABASE_URL = os.environ.get("SUPABASE_URL")            # e.g. https://xyz.supabase.co
    SUPABASE_ANON_KEY = os.environ.get("SUPABASE_ANON_KEY")  # public anon key, sent as `apikey`
    IDENTITY_TIMEOUT = int(os.environ.get("IDENTITY_TIMEOUT", 10))

    # --- Generation provider (Gemini) ---
    GOOGLE_API_KEY = os.environ.get("GOOGLE_API_KEY")
    GENERATION_MODEL = os.environ.get("GENERATION_MODEL", "gemini-2.5-flash-image")
    GENERATION_API_URL = os.environ.get(
        "GENERATION_API_URL",
        "https://generativelanguage.googleapis.com/v1beta/models",
    )
    GENERATION_TIMEOUT = int(os.environ.get("GENERATION_TIMEOUT", 60))
    PROVIDER_RETRY_AFTER = int(os.environ.get("PROVIDER_RETRY_AFTER", 60))

    # --- Stripe ---
    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET")

    # --- Credits ---
    # Free balance granted once, when the account is first provisioned.
    FREE_STARTING_CREDITS = int(os.environ.get("FREE_STARTING_CREDITS", 3))

    # --- Client session refresh ceiling (seconds) ---
    SESSION_REFRESH_TIMEOUT = int(os.environ.get("SESSION_REFRESH_TIMEOUT", 10))

    # --- Rate limits (Flask-Limiter syntax) ---
    GENERATE_RATE_LIMIT = os.environ.get("GENERATE_RATE_LIMIT", "10 per hour")
    CHECKOUT_RATE_LIMIT = os.environ.get("CHECKOUT_RATE_LIMIT", "5 per hour")
    PACKAGES_RATE_LIMIT = os.environ.get("PACKAGES_RATE_LIMIT", "60 per hour")

    # --- SQLAlchemy ---
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }

    # Raw generated images are returned inline; allow camera-sized uploads.
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024

    @staticmethod
    def validate():
        """Fail fast if required env vars are missing."""
        required = [
            "SECRET_KEY",
            "DATABASE_URL",
            "SUPABASE_URL",
            "SUPABASE_ANON_KEY",
            "GOOGLE_API_KEY",
            "STRIPE_SECRET_KEY",
            "STRIPE_WEBHOOK_SECRET",
            "APP_BASE_URL",
        ]
        missing = [v for v in required if not os.environ.get(v)]
        if missing:
            raise RuntimeError(
                f"Missing required environment variables: {', '.join(missing)}"
            )


class DevConfig(Config):
    """Local development."""

    DEBUG = True
    SQLALCHEMY_DATABASE_URI = Config.SQLALCHEMY_DATABASE_URI or "sqlite:///morpheo-dev.db"


class TestConfig(Config):
    """Testing — in-memory SQLite, external platforms faked."""

    TESTING = True
    DEBUG = True
    SECRET_KEY = "test-secret-key-not-for-production"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SUPABASE_URL = "https://supabase.test"
    SUPABASE_ANON_KEY = "anon_test_fake"
    GOOGLE_API_KEY = "google_test_fake"
    STRIPE_SECRET_KEY = "sk_test_fake"
    STRIPE_WEBHOOK_SECRET = "whsec_test_fake"
    APP_BASE_URL = "http://localhost:5000"
    FREE_STARTING_CREDITS = 3
    PROVIDER_RETRY_AFTER = 60
    RATELIMIT_ENABLED = False  # disable rate limiting in tests
    SERVER_NAME = "localhost"

    @staticmethod
    def validate():
        """Skip validation in test mode — everything is hardcoded."""
        pass


class ProdConfig(Config):
    """Production."""

    DEBUG = False


config_by_name = {
    "development": DevConfig,
    "production": ProdConfig,
    "testing": TestConfig,
}
