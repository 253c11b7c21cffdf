"""Route template matching for the gateway.

Templates use ``{name}`` placeholders for single path segments, e.g.
``/items/{id}``. Routes are tried in configuration order; the first
template whose pattern matches wins.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..utils.config_loader import GatewayConfig, PolicyConfig, RouteConfig

_PARAM_RE = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


@dataclass
class RoutePlan:
    route: RouteConfig
    policy: PolicyConfig
    params: dict[str, str]

    @property
    def route_path(self) -> str:
        return self.route.path


@dataclass(frozen=True)
class _CompiledRoute:
    index: int
    route: RouteConfig
    pattern: re.Pattern


def compile_template(template: str) -> re.Pattern:
    parts = []
    pos = 0
    for match in _PARAM_RE.finditer(template):
        parts.append(re.escape(template[pos:match.start()]))
        parts.append(f"(?P<{match.group(1)}>[^/]+)")
        pos = match.end()
    parts.append(re.escape(template[pos:]))
    return re.compile("^" + "".join(parts) + "/?$")


class RouteTable:
    def __init__(self, config: GatewayConfig):
        self.config = config
        self._routes = [
            _CompiledRoute(index=i, route=route, pattern=compile_template(route.path))
            for i, route in enumerate(config.routes)
        ]

    def resolve(self, method: str, path: str) -> tuple[RoutePlan | None, str | None]:
        method = method.upper()
        path_matched = False
        for compiled in self._routes:
            match = compiled.pattern.match(path)
            if not match:
                continue
            path_matched = True
            if method not in compiled.route.methods:
                continue
            return (
                RoutePlan(
                    route=compiled.route,
                    policy=self.config.policy_for(compiled.index),
                    params=match.groupdict(),
                ),
                None,
            )
        if path_matched:
            return None, f"Method {method} not allowed for {path}"
        return None, f"No route matches {path}"


_cached_table: RouteTable | None = None


def resolve_route(config: GatewayConfig, method: str, path: str) -> tuple[RoutePlan | None, str | None]:
    global _cached_table
    if _cached_table is None or _cached_table.config is not config:
        _cached_table = RouteTable(config)
    return _cached_table.resolve(method, path)
