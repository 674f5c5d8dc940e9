from txgalaxy.config import ConfigError, OptimizerConfig
from txgalaxy.objects import SpaceObject
from txgalaxy.optimizer import UniverseOptimizer
from txgalaxy.visibility.camera import Camera
from txgalaxy.visibility.lod import LODTier

__all__ = ["Camera", "ConfigError", "LODTier", "OptimizerConfig", "SpaceObject", "UniverseOptimizer"]
