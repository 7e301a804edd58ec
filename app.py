import logging
import os

from flask import Flask, jsonify
from werkzeug.exceptions import MethodNotAllowed, TooManyRequests
from werkzeug.middleware.proxy_fix import ProxyFix

from config import DAILY_LIMIT, FEED_CAP, HARVEST_DAYS, Settings, load_settings
from extensions import cors, limiter
from gateway import build_gateway
from harvest import HarvestSettlement
from ledger import Ledger, WalletLocks
from noospace_api import noospace_api
from posts import PostService
from quota import QuotaTracker


def build_services(gateway) -> dict:
    # Ledger, harvest and posts share one lock registry so every
    # read-modify-write on a wallet is serialized.
    locks = WalletLocks()
    ledger = Ledger(gateway, locks)
    quota = QuotaTracker(gateway)
    return {
        "gateway": gateway,
        "locks": locks,
        "ledger": ledger,
        "quota": quota,
        "harvest": HarvestSettlement(gateway, locks),
        "posts": PostService(gateway, ledger, quota, locks),
    }


def create_app(settings: Settings | None = None, gateway=None) -> Flask:
    settings = settings or load_settings()

    app = Flask(__name__)
    app.config["SECRET_KEY"] = settings.secret_key
    app.config["TESTING"] = settings.testing
    app.config["RATELIMIT_ENABLED"] = settings.ratelimit_enabled
    app.config["RATELIMIT_STORAGE_URI"] = settings.rate_limit_storage_url

    # Render (and most PaaS) sits behind one proxy hop.
    if os.getenv("RENDER") or os.getenv("FLASK_ENV") == "production":
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    cors.init_app(app)
    limiter.init_app(app)

    if gateway is None:
        gateway = build_gateway(settings)
    app.extensions["noospace"] = build_services(gateway)

    if not gateway.remote_configured:
        app.logger.warning("No remote store configured; using local fallback at %s", settings.local_url)

    @app.errorhandler(MethodNotAllowed)
    def method_not_allowed(e):
        return jsonify({"ok": False, "error": "Method not allowed"}), 405

    @app.errorhandler(TooManyRequests)
    def rate_limited(e):
        return jsonify({"ok": False, "error": f"Rate limit exceeded: {e.description}"}), 429

    app.register_blueprint(noospace_api)
    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    port = int(os.getenv("PORT", 5000))
    debug = os.getenv("FLASK_ENV", "development") == "development"
    settings = load_settings()
    app = create_app(settings)

    print("=" * 60)
    print("NooSpace reward ledger")
    print("=" * 60)
    print(f"Remote store: {'configured' if settings.remote_configured else 'not configured (local fallback only)'}")
    print(f"Local store: {settings.local_url}")
    print(f"Daily limit: {DAILY_LIMIT} posts, feed cap {FEED_CAP}, harvest cycle {HARVEST_DAYS} days")
    print(f"API: http://localhost:{port}/api/health")
    print("=" * 60)

    app.run(host="0.0.0.0", port=port, debug=debug, threaded=True)
