from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any

logger = logging.getLogger(__name__)


def fetch_sections(
    loaders: Mapping[str, Callable[[], Any]],
    *,
    default: Any = None,
    max_workers: int = 6,
) -> dict[str, Any]:
    """
    Run independent page-section loaders concurrently and wait for all of them.

    A loader that raises yields `default` for its own section only.
    """
    results: dict[str, Any] = {name: default for name in loaders}
    if not loaders:
        return results

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(loaders)))) as executor:
        futures = {executor.submit(loader): name for name, loader in loaders.items()}
        for future in as_completed(futures):
            name = futures[future]
            try:
                results[name] = future.result()
            except Exception as e:
                logger.warning("Section %s failed to load: %s", name, e)
    return results
