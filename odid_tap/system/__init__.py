"""odid-tap system utilities: config."""
from .config import TapConfig
