from flask import Blueprint, g, request

from ..decorators import require_auth, require_org
from ..services import search_service

search_bp = Blueprint("search", __name__, url_prefix="/api/search")


@search_bp.get("")
@require_auth
@require_org
def search():
    """
    Quick search. ?q= (3+ characters), optional ?type=product|service|all
    and ?limit= (max 100).
    """
    kind = request.args.get("type") or None
    if kind is not None and kind not in search_service.SEARCH_TYPES:
        return {"error": f"type must be one of: {', '.join(sorted(search_service.SEARCH_TYPES))}"}, 400
    limit = request.args.get("limit", default=search_service.DEFAULT_LIMIT, type=int)
    limit = max(1, min(limit, search_service.MAX_LIMIT))
    return search_service.search(g.org_id, request.args.get("q", ""), kind=kind, limit=limit), 200
