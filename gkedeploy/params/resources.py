"""Cpu and memory request/limit defaulting shared by containers and sidecars.

Cpu and memory differ: an empty cpu limit stays empty, an empty memory
limit is always filled.
"""
from gkedeploy.params.models import ResourceSpec


def set_cpu_defaults(cpu: ResourceSpec, default_request: str) -> None:
    if not cpu.request:
        cpu.request = cpu.limit or default_request


def set_memory_defaults(memory: ResourceSpec, default_request: str, default_limit: str) -> None:
    request_is_empty = not memory.request
    if request_is_empty:
        memory.request = memory.limit or default_request
    if not memory.limit:
        memory.limit = default_limit if request_is_empty else memory.request
