"""HTTP API for posting, the feed, balances and harvest.

Routes:
- POST /api/harvest                 {wallet}
- POST /api/posts                   {wallet?, text, intent?, context_id?}
- GET  /api/posts?limit=200
- POST /api/posts/<id>/resonate
- POST /api/posts/<id>/sacrifice    {wallet}
- GET  /api/balances?wallet=...
- GET  /api/cycle?context_id=...
- GET  /api/health

Every response is JSON with an "ok" flag; failures carry an "error" message.
"""

import functools
import logging
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request

from errors import LedgerError
from extensions import limiter
from posts import utc_day


logger = logging.getLogger(__name__)

noospace_api = Blueprint("noospace_api", __name__)

LOCAL_HARVEST_HINT = (
    "Remote store not configured; run harvest against your local fallback "
    "(python scripts/harvest_local.py <wallet>)"
)


def _services() -> dict:
    return current_app.extensions["noospace"]


def get_client_ip() -> str:
    """Best-effort client IP (ProxyFix already applied in production)."""
    try:
        if request.access_route:
            return request.access_route[0]
    except Exception:
        pass
    return request.remote_addr or "0.0.0.0"


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _wallet_from(data) -> str:
    wallet = data.get("wallet")
    return wallet.strip() if isinstance(wallet, str) else ""


def json_errors(view):
    """Render LedgerError as {"ok": False, "error": ...}; anything else as a 500."""

    @functools.wraps(view)
    def wrapper(*args, **kwargs):
        try:
            return view(*args, **kwargs)
        except LedgerError as e:
            return jsonify({"ok": False, "error": e.message}), e.status_code
        except Exception:
            logger.exception("%s failed", request.path)
            return jsonify({"ok": False, "error": "server error"}), 500

    return wrapper


@noospace_api.post("/api/harvest")
@limiter.limit("5 per minute")
@json_errors
def harvest():
    data = _json_body()
    wallet = _wallet_from(data)
    if not wallet:
        return jsonify({"ok": False, "error": "Missing wallet"}), 400

    svc = _services()
    if not svc["gateway"].remote_configured:
        return jsonify({"ok": False, "error": LOCAL_HARVEST_HINT})

    awarded = svc["harvest"].settle(wallet)
    return jsonify({"ok": True, "awarded": awarded})


@noospace_api.post("/api/posts")
@limiter.limit("20 per minute")
@json_errors
def create_post():
    data = _json_body()
    context_id = str(data.get("context_id") or "").strip() or get_client_ip()
    result = _services()["posts"].create_post(
        data.get("wallet"),
        data.get("text"),
        intent_modifier_active=data.get("intent") is True,
        context_id=context_id,
    )
    return jsonify({"ok": True, **result})


@noospace_api.get("/api/posts")
@json_errors
def list_posts():
    limit = request.args.get("limit", type=int) or 200
    return jsonify({"ok": True, "posts": _services()["posts"].list_posts(limit)})


@noospace_api.post("/api/posts/<int:post_id>/resonate")
@json_errors
def resonate(post_id):
    found = _services()["posts"].resonate(post_id)
    return jsonify({"ok": True, "post_id": post_id, "found": found})


@noospace_api.post("/api/posts/<int:post_id>/sacrifice")
@limiter.limit("10 per minute")
@json_errors
def sacrifice(post_id):
    data = _json_body()
    result = _services()["posts"].sacrifice(data.get("wallet"), post_id)
    return jsonify({"ok": True, **result})


@noospace_api.get("/api/balances")
@limiter.limit("60 per minute")
@json_errors
def balances():
    wallet = (request.args.get("wallet") or "").strip()
    if not wallet:
        return jsonify({"ok": False, "error": "Missing wallet"}), 400
    return jsonify({"ok": True, **_services()["ledger"].snapshot(wallet)})


@noospace_api.get("/api/cycle")
@json_errors
def cycle():
    context_id = (request.args.get("context_id") or "").strip() or get_client_ip()
    quota = _services()["quota"]
    day = utc_day()
    return jsonify(
        {
            "ok": True,
            "context_id": context_id,
            "used_today": quota.used_today(context_id, day),
            "daily_limit": quota.limit,
            "days_left": quota.days_left(context_id),
            "shadow": quota.shadow_total(context_id),
        }
    )


@noospace_api.get("/api/health")
def health_check():
    gateway = _services()["gateway"]
    try:
        gateway.local.ping()
        return jsonify(
            {
                "ok": True,
                "status": "healthy",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                **gateway.status(),
            }
        )
    except Exception as e:
        return jsonify(
            {
                "ok": False,
                "status": "unhealthy",
                "error": str(e),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        ), 500
