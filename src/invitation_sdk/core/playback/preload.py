"""Best-effort image warm-up before a slideshow starts."""

import logging
from dataclasses import dataclass, field
from typing import Iterable

import requests

logger = logging.getLogger("StoryInvitation.playback.preload")


@dataclass
class PreloadReport:
    loaded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def preload_images(urls: Iterable[str], timeout: float = 10.0) -> PreloadReport:
    """Fetch each image once so later requests hit a warm cache.

    A failed fetch is recorded and skipped; it never raises.
    """
    report = PreloadReport()
    for url in urls:
        if not url:
            continue
        try:
            resp = requests.get(url, timeout=timeout, stream=True)
            resp.raise_for_status()
            for _ in resp.iter_content(chunk_size=8192):
                pass
            report.loaded.append(url)
        except requests.RequestException as e:
            logger.info(f"Preload failed for {url}: {e}")
            report.failed.append(url)
    return report
