import logging
import sys

# Centralized logger name
LOGGER_NAME = "shader_nodes"
DISPLAY_NAME = "ShaderNodes"

def get_logger() -> logging.Logger:
    """Get the standard logger for Shader Nodes."""
    return logging.getLogger(LOGGER_NAME)

def setup_logger(level=logging.INFO, stream=None):
    """
    Configure the Shader Nodes logger.

    Module loggers are created with logging.getLogger(__name__), so they
    are all children of this one and share its handler.

    Args:
        level: Logging level (default: INFO)
        stream: Output stream (default: sys.stdout)
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Remove existing handlers to prevent duplicates
    if logger.handlers:
        logger.handlers.clear()

    ch = logging.StreamHandler(stream or sys.stdout)
    ch.setLevel(level)

    # Format: [ShaderNodes] [Level] Message
    formatter = logging.Formatter(f'[{DISPLAY_NAME}] [%(levelname)s] %(message)s')
    ch.setFormatter(formatter)

    logger.addHandler(ch)

    return logger

def log_info(msg: str):
    get_logger().info(msg)

def log_warning(msg: str):
    get_logger().warning(msg)

def log_error(msg: str):
    get_logger().error(msg)

def log_debug(msg: str):
    get_logger().debug(msg)
