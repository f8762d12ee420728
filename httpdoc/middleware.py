"""
Post-load hooks.

A hook is called with the loaded Document after every successful transport
round-trip.  It signals failure by returning False or by raising; either
way the load fails with MiddlewareError.  Hooks run in registration order
and the first failure stops the chain.
"""

from typing import TYPE_CHECKING, Callable, Iterable, Optional

from .exceptions import MiddlewareError
from .logger import get_module_logger

if TYPE_CHECKING:
    from .document import Document

logger = get_module_logger("middleware")

Hook = Callable[["Document"], Optional[bool]]


def hook_name(hook: Hook) -> str:
    return getattr(hook, "__qualname__", None) or getattr(hook, "__name__", None) or repr(hook)


class MiddlewareChain:
    """Ordered list of post-load hooks."""

    def __init__(self, hooks: Iterable[Hook] = ()):
        self._hooks: list[Hook] = list(hooks)

    def __len__(self) -> int:
        return len(self._hooks)

    def __iter__(self):
        return iter(self._hooks)

    def add(self, hook: Hook) -> Hook:
        """Register a hook; returns it so add() works as a decorator."""
        self._hooks.append(hook)
        return hook

    def run(self, document: "Document") -> None:
        """
        Run every hook against `document`.

        Raises:
            MiddlewareError: a hook returned False or raised
        """
        for hook in self._hooks:
            name = hook_name(hook)
            try:
                result = hook(document)
            except MiddlewareError:
                raise
            except Exception as e:
                logger.error(f"Middleware {name} raised: {e}")
                raise MiddlewareError(
                    f"Middleware {name} failed: {e}",
                    hook=name,
                    document_url=str(document.url),
                    details={"error": str(e)}
                ) from e
            if result is False:
                logger.error(f"Middleware {name} rejected {document.url}")
                raise MiddlewareError(
                    f"Middleware {name} rejected the document",
                    hook=name,
                    document_url=str(document.url)
                )
