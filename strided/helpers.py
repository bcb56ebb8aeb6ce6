import os
from typing import Any


def getenv(key: str, default: Any = 0) -> Any:
    return type(default)(os.environ.get(key, default))


DEBUG = getenv("DEBUG", 0)


def dprint(*args, level: int = 1, **kwargs) -> None:
    if DEBUG >= level:
        print(*args, **kwargs)
