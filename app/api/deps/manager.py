"""Connector manager dependencies."""

from fastapi import Depends, Request

from manager.context import ManagerContext, get_context
from manager.production import ProductionManager


def get_manager_context(request: Request) -> ManagerContext:
    context = getattr(request.app.state, "context", None)
    return context if context is not None else get_context()


def get_manager(context: ManagerContext = Depends(get_manager_context)) -> ProductionManager:
    return context.manager
