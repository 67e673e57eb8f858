from modelforge.sinks.directory import DirectorySink
from modelforge.sinks.memory import MemorySink

__all__ = [
    "DirectorySink",
    "MemorySink",
]
