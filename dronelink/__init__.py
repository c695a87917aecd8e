from .app.config import DroneLinkConfig, load_config
from .runtime.drone_link import DroneLink

__all__ = ["DroneLink", "DroneLinkConfig", "load_config"]
