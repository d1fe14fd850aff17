"""Configuration constants for the Google Maps address extractor

Searches are issued as plain map-search URLs ("<term> in <zip> <state> USA").
The result list and place panel are located with several selector variants
because the rendered markup is not a stable contract and changes often.
"""

from urllib.parse import quote_plus

# Search URL
SEARCH_URL_TEMPLATE = "https://www.google.com/maps/search/{query}"
SEARCH_QUERY_TEMPLATE = "{term} in {zipcode} {state} USA"

# Browser session settings
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
VIEWPORT = {'width': 1920, 'height': 1080}
LOCALE = "en-US"
LAUNCH_ARGS = ['--no-sandbox', '--disable-dev-shm-usage']

# Search-term profiles, tried in order until a valid address is found
SEARCH_PROFILES = {
    'landmarks': [
        'post office',
        'schools',
        'colleges',
        'petrol stations',
        'government office',
        'apartments',
        'hospitals',
        'pharmacies',
        'police station',
    ],
    'gas_station': [
        'gas station',
    ],
}
DEFAULT_PROFILE = 'landmarks'

# Cookie consent buttons shown on first visit in some regions
CONSENT_BUTTON_TEXTS = ['Accept all', 'I agree', 'Accept']

# Any of these appearing means the search has rendered something clickable.
# The place-panel selector covers searches that jump straight to one place.
RESULTS_READY_SELECTORS = [
    'div[role="article"]',
    '.Nv2PK',
    '.hfpxzc',
    '[data-result-index]',
    '.section-result',
    'button[data-item-id="address"]',
]

# Shown instead of a result list when a search matches nothing. `:has-text`
# is Playwright's text pseudo-class; snapshot pages map it onto soupsieve.
NO_RESULTS_SELECTORS = [
    'div:has-text("Google Maps can\'t find")',
]

# Selector for the address button that marks an open place panel
PLACE_PANEL_SELECTOR = 'button[data-item-id="address"]'


def result_entry_selectors(index: int):
    """Selectors for the result list, most specific first.

    Index-specific selectors only ever match one element, so callers should
    pick element 0 from them and element ``index`` from the generic ones.
    """
    return [
        (f'div[data-result-index="{index}"]', True),
        (f'a[data-result-index="{index}"]', True),
        ('div[role="article"]', False),
        ('.Nv2PK', False),
        ('.hfpxzc', False),
        ("xpath=//div/a[contains(@href,'https://www.google.com/maps')]", False),
    ]


# Address locators in priority order. Each entry reads either the element
# text or an attribute; ``strip_prefix`` removes a label such as "Address: ".
ADDRESS_LOCATORS = [
    {'name': 'address_button_label', 'selector': 'button[data-item-id="address"]',
     'attribute': 'aria-label', 'strip_prefix': 'Address:'},
    {'name': 'address_button', 'selector': 'button[data-item-id="address"]'},
    {'name': 'address_field', 'selector': 'div[data-item-id="address"]'},
    {'name': 'address_value', 'selector': '[data-value="Address"]'},
    {'name': 'panel_body', 'selector': '.rogA2c .fontBodyMedium'},
    {'name': 'panel_info', 'selector': '.Io6YTe.fontBodyMedium'},
    {'name': 'panel_row', 'selector': '.rogA2c'},
    {'name': 'panel_detail', 'selector': '.AeaXub .fontBodyMedium'},
    {'name': 'info_text', 'selector': '.Io6YTe'},
    {'name': 'body_text', 'selector': '.fontBodyMedium'},
    {'name': 'broad_scan', 'selector': 'span, div', 'min_length': 15, 'max_length': 200},
]


def build_search_url(term: str, zipcode: str, state: str) -> str:
    """Build the map-search URL for one search term and unit.

    Args:
        term: Search term (e.g. "post office")
        zipcode: 5-digit ZIP code
        state: 2-letter state code

    Returns:
        Search URL with the query form-encoded
    """
    query = SEARCH_QUERY_TEMPLATE.format(term=term, zipcode=zipcode, state=state)
    return SEARCH_URL_TEMPLATE.format(query=quote_plus(query))
