import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


def _shipping_rates(raw: str) -> dict:
    # "NL:0,BE:4.95" -> {"NL": "0", "BE": "4.95"}
    rates = {}
    for part in (raw or "").split(","):
        if ":" not in part:
            continue
        country, rate = part.split(":", 1)
        if country.strip():
            rates[country.strip().upper()] = rate.strip()
    return rates


class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False
    ENV = os.getenv("FLASK_ENV", "development")

    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-me")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=int(os.getenv("SESSION_TTL_DAYS", "30")))
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # commerce backend
    WC_BASE_URL = os.getenv("WC_BASE_URL", "https://wordpress.restaurantmahzen.nl/wp-json/wc/v3")
    WC_CONSUMER_KEY = os.getenv("WC_CONSUMER_KEY", "")
    WC_CONSUMER_SECRET = os.getenv("WC_CONSUMER_SECRET", "")
    WC_TIMEOUT = float(os.getenv("WC_TIMEOUT", "15"))
    WC_RETRIES = int(os.getenv("WC_RETRIES", "2"))
    CATALOG_CACHE_TTL = int(os.getenv("CATALOG_CACHE_TTL", "300"))
    STORE_BASE_URL = os.getenv("STORE_BASE_URL", "https://wordpress.restaurantmahzen.nl")

    # "redirect" hands the shopper to the hosted order-pay page,
    # "simulate" marks the order paid directly (test mode)
    PAYMENT_MODE = os.getenv("PAYMENT_MODE", "redirect")

    # pricing
    VAT_POLICY = os.getenv("VAT_POLICY", "exclusive")
    VAT_RATE = os.getenv("VAT_RATE", "0.21")
    SHIPPING_RATES = _shipping_rates(os.getenv("SHIPPING_RATES", "NL:0,BE:4.95,DE:6.95,FR:8.95"))
    # TODO: unknown destinations ship for free; replace with a "no delivery" error once the shop lists its countries
    SHIPPING_FALLBACK_RATE = os.getenv("SHIPPING_FALLBACK_RATE", "0")
    DEFAULT_COUNTRY = os.getenv("DEFAULT_COUNTRY", "NL")

    # lifetime of checkout handoff entries
    TRANSIENT_TTL_MINUTES = int(os.getenv("TRANSIENT_TTL_MINUTES", "120"))

    @staticmethod
    def init_app(app):

        if not os.getenv("DATABASE_URL"):
            os.makedirs(app.instance_path, exist_ok=True)
            app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{os.path.join(app.instance_path, 'storefront.db')}"
        else:
            app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL")
