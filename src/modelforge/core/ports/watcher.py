from typing import Protocol


class ModelWatcherPort(Protocol):
    async def start(self) -> None: ...

    async def stop(self) -> None: ...
