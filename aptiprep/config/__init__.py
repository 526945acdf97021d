from .config import configure_logging, load_config, validate_config, weights_from_config

__all__ = ["configure_logging", "load_config", "validate_config", "weights_from_config"]
