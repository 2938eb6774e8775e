"""Audit defaults (user agents, headers, timeouts, signatures, paths).

Centralizes static defaults so the strategies, validator and extractors carry
no embedded magic strings. Callers can build their own ``TransportConfig`` or
``ProviderConfig`` to override the transport-facing values.
"""

from __future__ import annotations

from pathlib import Path

# Paths (working-directory relative)
PROVIDER_CONFIG_PATH = Path("scraping-config.json")

# Env knobs
ENV_PROVIDER_CONFIG = "GEO_AUDIT_PROVIDER_CONFIG"
ENV_PROXY_URL = "GEO_AUDIT_PROXY_URL"
ENV_VERIFY_TLS = "GEO_AUDIT_VERIFY_TLS"
ENV_CHALLENGE_DELAY = "GEO_AUDIT_CHALLENGE_DELAY"

# Request validation
MIN_MARKUP_CHARS = 100
DEFAULT_PAGE_TYPE = "article"
MARKUP_URL_LABEL = "pasted-markup"

# Response validation
MIN_BODY_CHARS = 500
CHALLENGE_SIGNATURES = (
    "checking your browser",
    "just a moment...",
    "verify you are human",
    "verifying you are human",
    "please verify you are a human",
    "are you a robot",
    "captcha-delivery.com",
    "access denied",
    "403 forbidden",
    "too many requests",
    "rate limit exceeded",
    "request unsuccessful. incapsula",
    "cf-browser-verification",
    "challenge-platform",
    "_cf_chl_opt",
    "cf-challenge",
    "ddos protection by",
)
STRUCTURAL_TAGS = ("html", "head", "body", "div", "article", "main", "section")

# Identity
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)
BOT_USER_AGENT = "Mozilla/5.0 (compatible; GEO-Audit-Bot/1.0; +https://github.com/geo-audit/geo-audit)"
BASIC_USER_AGENT = "Mozilla/5.0 (compatible; GEO-Audit/1.0)"

BOT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml",
    "X-Audit-Tool": "GEO-Audit",
    "X-Audit-Purpose": "machine-readability-audit",
}

BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "fr-FR,fr;q=0.9,en-US;q=0.8,en;q=0.7",
    "Accept-Encoding": "gzip, deflate, br",
    "Cache-Control": "max-age=0",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "cross-site",
    "Sec-Fetch-User": "?1",
    "sec-ch-ua": '"Google Chrome";v="124", "Chromium";v="124", "Not-A.Brand";v="99"',
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"Windows"',
    "Referer": "https://www.google.com/",
}

BASIC_HEADERS = {"Accept": "text/html"}

CRAWLER_USER_AGENTS = (
    "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)",
    "Mozilla/5.0 (compatible; bingbot/2.0; +http://www.bing.com/bingbot.htm)",
    "DuckDuckBot/1.1; (+http://duckduckgo.com/duckduckbot.html)",
)

ROTATION_USER_AGENTS = (
    BROWSER_USER_AGENT,
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36 Edg/124.0.0.0",
)

MOBILE_USER_AGENTS = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_4 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.4 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Mobile Safari/537.36",
    "Mozilla/5.0 (Linux; Android 14; SM-S921B) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Mobile Safari/537.36",
)

# Timeouts (connect, total) in seconds
BOT_TIMEOUTS = (10.0, 30.0)
BROWSER_TIMEOUTS = (15.0, 45.0)
BASIC_TIMEOUTS = (10.0, 30.0)
LOCAL_TIMEOUTS = (10.0, 30.0)
BYPASS_TIMEOUTS = (15.0, 30.0)
PROVIDER_TIMEOUTS = (30.0, 120.0)
PROVIDER_JSON_TIMEOUTS = (30.0, 90.0)
MAX_REDIRECTS = 5

# Bypass endpoints
WEB_CACHE_ENDPOINT = "https://webcache.googleusercontent.com/search?q=cache:"
WAYBACK_AVAILABILITY_ENDPOINT = "https://archive.org/wayback/available"
CHALLENGE_STATUS_CODES = {403, 503}
CHALLENGE_DELAY_SECONDS = 5.0
CHALLENGE_MARKERS = ("cf-browser-verification", "challenge-platform", "_cf_chl_opt", "cf-chl-")
DELAYED_RETRY_ATTEMPTS = 3
DELAYED_RETRY_STEP_SECONDS = 2.0

# Provider endpoints
SCRAPINGBEE_ENDPOINT = "https://app.scrapingbee.com/api/v1/"
SCRAPERAPI_ENDPOINT = "https://api.scraperapi.com/"
ZENROWS_ENDPOINT = "https://api.zenrows.com/v1/"
BRIGHTDATA_ENDPOINT = "https://api.brightdata.com/request"
PROVIDER_MIN_BODY_CHARS = 500
PROVIDER_DEFAULT_COUNTRY = "fr"

# Extraction
LD_JSON_TYPE = "application/ld+json"
UNNAMED_ENTITY = "unnamed"
MICRODATA_ORGANIZATION = "schema.org/Organization"
MICRODATA_PERSON = "schema.org/Person"
VIDEO_HOST_MARKERS = (
    "youtube.com",
    "youtube-nocookie.com",
    "youtu.be",
    "vimeo.com",
    "dailymotion.com",
    "wistia",
)
OPTIMIZED_MEDIA_CLASSES = {
    "images": "geo-image",
    "videos": "geo-video",
    "audios": "geo-audio",
}
MAX_IMAGES_WITHOUT_ALT_DETAILS = 20
MAX_IMAGES_DETAILS = 30
CONSENT_TOOL_PATTERN = r"cmplz|cookie|consent|gdpr|rgpd|tarteaucitron|axeptio|didomi|onetrust|cookiebot"

PLATFORM_FINGERPRINTS = (
    "wp-content/",
    "wp-includes/",
    "wp-json",
    "wp-emoji",
    "xmlrpc.php",
    "wp-block-",
    'content="wordpress',
    "/wp-admin/",
)
PLATFORM_MIN_MATCHES = 2

# Scoring caps
ENTITIES_CAP = 30
MEDIA_CAP = 25
STRUCTURE_CAP = 25
METADATA_CAP = 20
VIDEO_RECOMMENDATION_SCORE_CEILING = 80
