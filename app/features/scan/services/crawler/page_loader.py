import base64
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import BaseModel, Field
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.common.by import By
from selenium.webdriver.support.ui import WebDriverWait

from app.features.scan.services.browser.driver_factory import build_driver
from app.platform.exceptions import CrawlError

logger = logging.getLogger(__name__)

# Cap on the post-DOMContentLoaded wait for the full load event
SECONDARY_WAIT_CAP_SECONDS = 5.0
SCREENSHOT_TIMEOUT_SECONDS = 10.0


class LoadedPage(BaseModel):
    html: str
    screenshot: Optional[bytes] = None
    links: List[str] = Field(default_factory=list)


class PageLoader(ABC):
    """Browser capability consumed by the crawler."""

    @abstractmethod
    def open(self) -> None:
        """Start the browsing session."""

    @abstractmethod
    def load_page(self, url: str, timeout: float) -> LoadedPage:
        """Load one page in a fresh context; raise on failure."""

    @abstractmethod
    def close(self) -> None:
        """End the browsing session."""


class SeleniumPageLoader(PageLoader):
    """
    Selenium-backed loader. Each page gets its own tab which is closed
    after capture no matter how the load ended.
    """

    def __init__(self, chromedriver_path: Optional[str] = None):
        self.chromedriver_path = chromedriver_path
        self.driver = None
        self._home_handle = None

    def open(self) -> None:
        try:
            self.driver = build_driver(
                page_load_strategy="eager", chromedriver_path=self.chromedriver_path
            )
        except WebDriverException as e:
            raise CrawlError(f"Could not start browser session: {e.msg or e}") from e
        self._home_handle = self.driver.current_window_handle

    def load_page(self, url: str, timeout: float) -> LoadedPage:
        if self.driver is None:
            raise CrawlError("Browser session is not open")

        self.driver.switch_to.new_window("tab")
        try:
            self.driver.set_page_load_timeout(timeout)
            self.driver.get(url)
            self._wait_for_load(min(timeout / 2, SECONDARY_WAIT_CAP_SECONDS))

            html = self.driver.page_source
            screenshot = self._capture_screenshot()
            links = [
                href
                for href in (
                    el.get_attribute("href")
                    for el in self.driver.find_elements(By.CSS_SELECTOR, "a[href]")
                )
                if href
            ]
            return LoadedPage(html=html, screenshot=screenshot, links=links)
        finally:
            self._close_tab()

    def close(self) -> None:
        if self.driver is not None:
            try:
                self.driver.quit()
            except WebDriverException as e:
                logger.warning(f"Error closing browser session: {e}")
            finally:
                self.driver = None

    def _wait_for_load(self, seconds: float) -> None:
        try:
            WebDriverWait(self.driver, seconds).until(
                lambda d: d.execute_script("return document.readyState") == "complete"
            )
        except TimeoutException:
            # DOMContentLoaded is enough
            pass

    def _capture_screenshot(self) -> Optional[bytes]:
        try:
            self.driver.set_script_timeout(SCREENSHOT_TIMEOUT_SECONDS)
            result = self.driver.execute_cdp_cmd(
                "Page.captureScreenshot",
                {"format": "png", "captureBeyondViewport": True},
            )
            return base64.b64decode(result["data"])
        except (WebDriverException, KeyError) as e:
            logger.warning(f"Full-page screenshot failed, using viewport capture: {e}")
        try:
            return self.driver.get_screenshot_as_png()
        except WebDriverException as e:
            logger.warning(f"Screenshot capture failed: {e}")
            return None

    def _close_tab(self) -> None:
        try:
            if self.driver.current_window_handle != self._home_handle:
                self.driver.close()
        except WebDriverException as e:
            logger.warning(f"Failed to close page tab: {e}")
        finally:
            try:
                self.driver.switch_to.window(self._home_handle)
            except WebDriverException as e:
                logger.warning(f"Failed to return to home tab: {e}")
