"""
FastAPI dependencies for the queue engine services.

The application lifespan builds one ``QueueManager`` and one
``QueueReporter`` and parks them on ``app.state``; tests override these
dependencies with their own instances.
"""

from fastapi import Request

from p2p_queue.matching_engine.manager import QueueManager
from p2p_queue.matching_engine.reporter import QueueReporter


def get_manager(request: Request) -> QueueManager:
    return request.app.state.manager


def get_reporter(request: Request) -> QueueReporter:
    return request.app.state.reporter
