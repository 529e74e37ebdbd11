from __future__ import annotations

import re

from fastapi import Request
from starlette.routing import compile_path

UNMATCHED_ROUTE = "<unmatched>"


def route_template(request: Request) -> str:
    """Route path with placeholders for the request, e.g. /api/v1/users/{user_id}.

    Resolved from the path alone, so it works before and after routing;
    /users/1 and /users/2 give the same template and unknown paths give UNMATCHED_ROUTE.
    """
    path = request.scope.get("path") or request.url.path
    best = None
    for template, regex in _route_patterns(request.app):
        # /groups/stats vence /groups/{group_id}
        if regex.match(path) and (best is None or template.count("{") < best.count("{")):
            best = template
    return best or UNMATCHED_ROUTE


def _route_patterns(app) -> list[tuple[str, re.Pattern]]:
    # routers incluidos nem sempre expoem o path com prefixo; o schema OpenAPI sim
    patterns = getattr(app.state, "route_patterns", None)
    if patterns is not None:
        return patterns
    templates = set(app.openapi().get("paths", {})) if app.openapi_url else set()
    for route in app.routes:
        template = getattr(route, "path_format", None)
        if template:
            templates.add(template)
    patterns = [(template, compile_path(template)[0]) for template in sorted(templates)]
    app.state.route_patterns = patterns
    return patterns
