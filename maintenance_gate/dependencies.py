from fastapi import Request

from .core.gate_cache import GateCache
from .core.maintenance_mutator import MaintenanceMutator


def get_gate_cache(request: Request) -> GateCache:
    return request.app.state.gate_cache


def get_maintenance_mutator(request: Request) -> MaintenanceMutator:
    return request.app.state.maintenance_mutator
