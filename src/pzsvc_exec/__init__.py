from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pzsvc-exec")
except PackageNotFoundError:
    __version__ = "unknown"
