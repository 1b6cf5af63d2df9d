"""Search page object, tuned by hand."""
from selenium.webdriver.common.by import By


class SearchPage:
    """Actions on the search page."""

    elements = {
        "search_input": (By.ID, "search"),
    }

    def __init__(self, driver):
        self.driver = driver

    def search(self, text):
        # wait for the debounce before typing
        field = self.driver.find_element(*self.elements["search_input"])
        field.send_keys(text)
