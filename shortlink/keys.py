import functools
from collections.abc import Callable

__all__ = ["LinkKeySchema"]


def prefix_key(func: Callable) -> Callable:
    @functools.wraps(func)
    def wrapper(self, *args, **kwargs) -> str:
        key = func(self, *args, **kwargs)
        return f"{self.prefix}:{key}" if self.prefix else key

    return wrapper


class LinkKeySchema:
    """Provide the Redis keys used by the durable link store.

    With the default ``short`` prefix the layout is::

        short:short:<code>   string  long URL of a short code
        short:link           hash    md5(long URL) -> short code
        short:stats:<code>   string  visit counter
    """

    def __init__(self, prefix: str | None = "short"):
        if prefix is not None and not isinstance(prefix, str):
            raise TypeError(f"Prefix must be of type string (given type: {type(prefix)}).")

        self.prefix = prefix

    @prefix_key
    def mapping_key(self, short_code: str) -> str:
        return f"short:{short_code}"

    @prefix_key
    def known_urls_key(self) -> str:
        return "link"

    @prefix_key
    def visits_key(self, short_code: str) -> str:
        return f"stats:{short_code}"
