"""
Version information for the VeilBridge SDK.
"""
import importlib.metadata
import pathlib
import tomli

# Installed package metadata wins; a source checkout reads pyproject.toml
try:
    __version__ = importlib.metadata.version("veilbridge-sdk")
except importlib.metadata.PackageNotFoundError:
    try:
        path = pathlib.Path(__file__).parent.parent / "pyproject.toml"
        with path.open("rb") as f:
            data = tomli.load(f)
        __version__ = data["project"]["version"]
    except (FileNotFoundError, KeyError, tomli.TOMLDecodeError):
        __version__ = "0.3.0"
