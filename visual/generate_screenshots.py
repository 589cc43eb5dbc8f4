"""
Screenshot Generator Module
Captures clipped PNG screenshots of rendered pages using Playwright.

Playwright's sync API must be driven from the thread that started it, so the
browser lives on a dedicated render thread and captures are queued to it.
"""

from typing import Dict, Optional
import logging
import queue
import threading

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

logger = logging.getLogger(__name__)

TARGET_SELECTOR = '.normal table'
CLIP_MARGIN = 4

BROWSER_ARGS = [
    "--disable-gpu",
    "--no-sandbox",
    "--disable-dev-shm-usage",
]

class CaptureError(Exception):
    """A screenshot could not be produced."""

def expand_clip(box: Optional[Dict[str, float]], margin: float = CLIP_MARGIN) -> Dict[str, float]:
    """Grow a bounding box by margin pixels on every side."""
    if box is None:
        raise CaptureError("Target element has no bounding box")
    return {
        'x': box['x'] - margin,
        'y': box['y'] - margin,
        'width': box['width'] + 2 * margin,
        'height': box['height'] + 2 * margin,
    }

def capture_element(context, html: str, selector: str = TARGET_SELECTOR) -> bytes:
    """
    Load a document into a fresh page and screenshot one element.

    Args:
        context: Playwright browser context
        html: Full HTML document to load
        selector: CSS selector of the element to capture

    Returns:
        PNG bytes clipped to the element plus a fixed margin

    Raises:
        CaptureError: If the page can't be loaded or the element can't be
            located or measured
    """
    page = context.new_page()
    try:
        page.set_content(html, wait_until="load")
        box = page.locator(selector).first.bounding_box()
        clip = expand_clip(box)
        logger.debug(f"Capturing {selector} clipped to {clip}")
        return page.screenshot(clip=clip, type='png')
    except PlaywrightError as e:
        raise CaptureError(f"Failed to capture {selector}: {e}") from e
    finally:
        page.close()

class ScreenshotGenerator:
    """Owns the headless browser and serves capture requests."""

    def __init__(self, ignore_https_errors: bool = True, headless: bool = True):
        self.ignore_https_errors = ignore_https_errors
        self.headless = headless
        self._queue: queue.Queue = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self._startup_error: Optional[BaseException] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> 'ScreenshotGenerator':
        """Launch the browser on the render thread and wait until it's ready."""
        if self.running:
            return self
        self._ready.clear()
        self._startup_error = None
        self._thread = threading.Thread(target=self._run, name='screenshot-renderer', daemon=True)
        self._thread.start()
        self._ready.wait()
        if self._startup_error is not None:
            raise CaptureError(f"Browser failed to start: {self._startup_error}") from self._startup_error
        logger.info("Headless browser started")
        return self

    def _run(self) -> None:
        try:
            playwright = sync_playwright().start()
            browser = playwright.chromium.launch(headless=self.headless, args=BROWSER_ARGS)
            context = browser.new_context(ignore_https_errors=self.ignore_https_errors)
        except Exception as e:
            logger.error(f"Error launching browser: {e}", exc_info=True)
            self._startup_error = e
            self._ready.set()
            return

        self._ready.set()
        try:
            while True:
                job = self._queue.get()
                if job is None:
                    break
                self._process(context, job)
        finally:
            context.close()
            browser.close()
            playwright.stop()
            logger.info("Headless browser stopped")

    def _process(self, context, job) -> None:
        """Run one queued capture unless its requester has stopped waiting."""
        html, result = job
        if result['cancelled'].is_set():
            logger.debug("Skipping capture abandoned by a timed out request")
            result['done'].set()
            return
        try:
            result['image'] = capture_element(context, html)
        except Exception as e:
            # Handed back to the waiting request thread
            result['error'] = e
        finally:
            result['done'].set()

    def capture(self, html: str, timeout: Optional[float] = None) -> bytes:
        """
        Screenshot the comparison table of an embed document.

        Args:
            html: Full embed document
            timeout: Seconds to wait for the render thread, None waits forever

        Returns:
            PNG bytes
        """
        if not self.running:
            raise CaptureError("Screenshot generator is not running")

        result = {
            'done': threading.Event(),
            'cancelled': threading.Event(),
            'image': None,
            'error': None,
        }
        self._queue.put((html, result))

        if not result['done'].wait(timeout=timeout):
            result['cancelled'].set()
            raise CaptureError(f"Screenshot capture timed out after {timeout}s")

        error = result['error']
        if isinstance(error, CaptureError):
            raise error
        if error is not None:
            raise CaptureError(f"Screenshot capture failed: {error}") from error
        return result['image']

    def close(self) -> None:
        """Stop the render thread and shut the browser down."""
        if not self.running:
            return
        self._queue.put(None)
        self._thread.join()
        self._thread = None

    def __enter__(self) -> 'ScreenshotGenerator':
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
