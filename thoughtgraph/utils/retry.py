"""
Bounded retry with exponential backoff for AWS service calls.
"""

import random
import time
from typing import Callable, Type, TypeVar

from botocore.exceptions import BotoCoreError, ClientError

from .logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


def call_with_retry(call: Callable[[], T], attempts: int, delay: float, label: str, error: Type[Exception]) -> T:
    """
    Run an AWS call, retrying transient service errors.

    Args:
        call: Zero-argument callable performing the request
        attempts: Total attempts, at least one is made
        delay: Base backoff delay in seconds, doubled per attempt plus jitter
        label: Service name used in log and error messages
        error: Exception type raised on final failure

    Raises:
        error: When every attempt fails or a non-service error occurs
    """
    attempts = max(1, attempts)

    for attempt in range(1, attempts + 1):
        try:
            logger.debug(f'{label} request attempt {attempt}/{attempts}')
            return call()

        except (ClientError, BotoCoreError) as e:
            logger.warning(f'{label} attempt {attempt}/{attempts} failed: {e}')
            if attempt == attempts:
                raise error(f'{label} failed after {attempts} attempts: {e}')
            time.sleep(delay * (2**(attempt - 1)) + random.uniform(0, 1))

        except error:
            raise

        except Exception as e:
            logger.error(f'Unexpected error in {label}: {e}')
            raise error(f'Unexpected {label} error: {e}')

    raise error(f'{label} failed after {attempts} attempts')
