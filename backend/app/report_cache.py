# Overview: Builds the report cache / cost basis observers and attaches them to the ORM session.

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from flask import Flask, current_app, has_app_context

from .extensions import db
from .models import Order, PurchaseLine
from .services.cost_basis_service import METHOD_LATEST, CostBasisPropagator
from .services.daily_summary_service import DailySummaryMaintainer
from .services.mutation_events import MutationEventSource
from .services.order_cache_service import OrderCacheMaintainer

EXTENSION_KEY = "report_cache"


@dataclass
class ReportCache:
    events: MutationEventSource
    summary: DailySummaryMaintainer
    orders: OrderCacheMaintainer
    cost_basis: CostBasisPropagator


def build_report_cache(
    *,
    default_method: str = METHOD_LATEST,
    logger: logging.Logger | None = None,
    session_filter: Callable | None = None,
) -> ReportCache:
    """
    Construct the maintainers with their dependencies and register them
    against a new event source. Nothing is attached to a session yet.
    """
    logger = logger or logging.getLogger("app.report_cache")
    summary = DailySummaryMaintainer(logger=logger)
    orders = OrderCacheMaintainer(summary=summary, logger=logger)
    cost_basis = CostBasisPropagator(default_method=default_method, logger=logger)

    events = MutationEventSource(logger=logger, session_filter=session_filter)
    events.register(Order, orders)
    events.register(PurchaseLine, cost_basis)
    return ReportCache(events=events, summary=summary, orders=orders, cost_basis=cost_basis)


def _owned_by(app: Flask) -> Callable:
    # db.session is shared by every app in the process; only flushes made
    # under this app's context belong to it.
    def session_filter(session) -> bool:
        return has_app_context() and current_app._get_current_object() is app

    return session_filter


def init_report_cache(app: Flask, session=None) -> ReportCache:
    cache = build_report_cache(
        default_method=app.config.get("HPP_DEFAULT_METHOD", METHOD_LATEST),
        logger=app.logger.getChild("report_cache"),
        session_filter=_owned_by(app) if session is None else None,
    )
    if app.config.get("REPORT_CACHE_ENABLED", True):
        cache.events.install(session if session is not None else db.session)
    app.extensions[EXTENSION_KEY] = cache
    return cache


def get_report_cache(app: Flask | None = None) -> ReportCache:
    return (app or current_app).extensions[EXTENSION_KEY]
