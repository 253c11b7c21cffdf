"""Gateway control plane: route resolution."""

from .router import RoutePlan, RouteTable, compile_template, resolve_route

__all__ = ["RoutePlan", "RouteTable", "compile_template", "resolve_route"]
