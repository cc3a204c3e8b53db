"""Common type definitions."""

from pathlib import Path
from typing import Callable, Union

# Type alias for paths
PathLike = Union[str, Path]

# Receives a tool-local percentage in [0, 100]
ProgressCallback = Callable[[float], None]
