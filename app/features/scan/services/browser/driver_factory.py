from typing import Optional

from selenium import webdriver
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service

from app.platform.config import settings


def build_driver(
    page_load_strategy: str = "eager",
    chromedriver_path: Optional[str] = None,
) -> webdriver.Chrome:
    """
    Headless Chrome session. `eager` returns from navigation once the DOM is
    ready instead of waiting for every subresource.
    """
    chrome_options = Options()
    chrome_options.add_argument('--headless=new')
    chrome_options.add_argument('--no-sandbox')
    chrome_options.add_argument('--disable-dev-shm-usage')
    chrome_options.add_argument('--window-size=1366,900')
    chrome_options.page_load_strategy = page_load_strategy

    driver_path = chromedriver_path or settings.CHROMEDRIVER_PATH
    if driver_path:
        driver_service = Service(executable_path=driver_path)
        return webdriver.Chrome(service=driver_service, options=chrome_options)
    return webdriver.Chrome(options=chrome_options)
