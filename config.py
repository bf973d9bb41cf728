import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as templebooking.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "templebooking.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bearer tokens are issued by the auth service; we only look them up
    SESSION_IDLE_TIMEOUT_SECONDS = int(os.getenv("SESSION_IDLE_TIMEOUT_SECONDS", str(8 * 60 * 60)))
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Slot grid
    SLOT_GRANULARITY_MINUTES = int(os.getenv("SLOT_GRANULARITY_MINUTES", "30"))

    # my-bookings pagination
    BOOKINGS_PAGE_LIMIT = 20
    BOOKINGS_PAGE_MAX = 100

    # Checkout
    DEFAULT_PAYMENT_METHOD = os.getenv("DEFAULT_PAYMENT_METHOD", "razorpay")

    # Basic app settings
    DEBUG = False


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
