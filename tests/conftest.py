import pytest


def make_page(body: str = "", head: str = "<title>Example</title>") -> str:
    filler = "<p>" + ("Plain article text for a realistic page. " * 20) + "</p>"
    return f"<!DOCTYPE html><html><head>{head}</head><body>{body}{filler}</body></html>"


@pytest.fixture
def page_html() -> str:
    return make_page("<main><h1>Welcome</h1></main>")
