import logging

import backoff

from hanyoung_vx4.controller import Reading


def _retry_handler(details):
    logging.info(
        f"Retrying after failed controller operation. Call details: {details}"
    )


def _is_failure(result) -> bool:
    """ Controller reads return a Reading, writes return a bool """
    if isinstance(result, Reading):
        return not result.ok
    return not result


def retry_on_failure(**backoff_kwargs):
    """ When used as a decorator, retry the wrapped controller operation while it fails.
    The controller itself never retries; use this where a caller wants to ride out temporary issues
    such as a timeout while the controller is busy.

    By default we retry up to 3 times at a constant interval with jitter, logging the call details of each
    failure. After the last try, its (failed) result is returned.

    Example usage:
    >>> read_pv_with_retry = retry_on_failure(max_tries=5)(controller.read_pv)

    Args:
        **backoff_kwargs: Additional keyword arguments will be passed to `backoff.on_predicate`.

    Returns:
        decorator which can be used to wrap a function
    """
    return backoff.on_predicate(
        backoff.constant,  # Use a constant interval between retries rather than, say, an exponential backoff
        _is_failure,
        **{
            "jitter": backoff.full_jitter,
            "interval": 0.5,
            "max_tries": 3,
            "on_backoff": _retry_handler,
            **backoff_kwargs,
        },
    )
