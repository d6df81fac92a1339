"""FastAPI dependencies for the shared delivery components.

The pool, dispatcher and admission control are built once in the application
lifespan and stored on app.state; request handlers reach them only through
these dependencies, which tests can override.
"""

from fastapi import Request

from .admission.rate_limit import AdmissionControl
from .config import Settings
from .delivery.dispatcher import Dispatcher
from .delivery.pool import RelayConnectionPool


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_admission_control(request: Request) -> AdmissionControl:
    return request.app.state.admission


def get_relay_pool(request: Request) -> RelayConnectionPool:
    return request.app.state.pool


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher
