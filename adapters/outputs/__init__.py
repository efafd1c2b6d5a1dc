"""Telemetry output sinks."""

from .sinks import BroadcastOutput, ConsoleOutput, FileOutput, OutputStrategy, StorageOutput
from .tcp import TcpOutput

__all__ = [
    "BroadcastOutput",
    "ConsoleOutput",
    "FileOutput",
    "OutputStrategy",
    "StorageOutput",
    "TcpOutput",
]
