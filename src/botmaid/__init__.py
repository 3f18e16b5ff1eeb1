"""
botmaid - multi-platform chat bot runtime

Normalizes several chat-platform wire protocols into one platform-neutral
message model and multiplexes them behind a single runtime.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("botmaid")
except PackageNotFoundError:
    __version__ = "0.3.0"

__all__ = [
    "__version__",
]
