from flask import Flask, jsonify
from .extensions import db, jwt, cors, migrate
from .config import Config

def create_app(config_overrides=None, backend=None):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    Config.init_app(app)
    if config_overrides:
        app.config.update(config_overrides)

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, resources={r"/*": {"origins": app.config["CORS_ORIGINS"]}})
    migrate.init_app(app, db)

    # Core services
    from .services.woocommerce import WooCommerceClient
    from .services.pricing import PricingRules
    from .services.payment import bridge_for_mode
    client = backend or WooCommerceClient.from_config(app.config)
    app.extensions["woocommerce"] = client
    app.extensions["pricing"] = PricingRules.from_config(app.config)
    app.extensions["payment_bridge"] = bridge_for_mode(
        app.config["PAYMENT_MODE"], client, store_base_url=app.config["STORE_BASE_URL"],
    )
    if not app.config["WC_CONSUMER_KEY"] and backend is None:
        app.logger.warning("WC_CONSUMER_KEY is not set; backend calls will be rejected")

    from .utils.errors import register_error_handlers
    register_error_handlers(app)

    # Register blueprints
    from .session import bp as session_bp; app.register_blueprint(session_bp)
    from .product import bp as product_bp; app.register_blueprint(product_bp)
    from .cart import bp as cart_bp; app.register_blueprint(cart_bp)
    from .coupon import bp as coupon_bp; app.register_blueprint(coupon_bp)
    from .checkout import bp as checkout_bp; app.register_blueprint(checkout_bp)
    from .order import bp as order_bp; app.register_blueprint(order_bp)

    from .cli import register_cli
    register_cli(app)

    @app.get("/")
    def health():
        return jsonify(ok=True, msg="API running", payment_mode=app.config["PAYMENT_MODE"])

    with app.app_context():
        from . import model  # noqa: F401  (register tables)
        db.create_all()

    return app
