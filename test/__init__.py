import logging

from shared.logger import EabiLogger

__eabitools__ = True  # tells this "test" package apart from the standard library one
logger = logging.getLogger('unittest')


def quiet_logger(name: str = 'test') -> EabiLogger:
    """Logger for unit tests: debug level, no console handler."""
    return EabiLogger(name, log_level='DEBUG', console_output=False)
