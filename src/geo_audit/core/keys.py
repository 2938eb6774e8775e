"""Stable AuditReport keys shared by the report builder, service and CLI."""

from __future__ import annotations

# Top-level report keys
K_URL = "url"
K_PAGE_TYPE = "pageType"
K_TIMESTAMP = "timestamp"
K_SCORE = "score"
K_IS_LIKELY_COMMON_PLATFORM = "isLikelyCommonPlatform"
K_ENTITIES = "entities"
K_MEDIA = "media"
K_CONTENT = "content"
K_METADATA = "metadata"
K_STRUCTURED_BLOCKS = "structuredLinkingDataBlocks"
K_BREAKDOWN = "breakdown"
K_RECOMMENDATIONS = "recommendations"

# Breakdown components
K_BD_ENTITIES = "entities"
K_BD_MEDIA = "media"
K_BD_STRUCTURE = "structure"
K_BD_METADATA = "metadata"

# Error payloads
K_ERROR = "error"
K_DETAILS = "details"
K_PROVIDER_CONFIGURED = "providerConfigured"
K_ATTEMPTS = "attempts"

# Request payload fields
K_REQ_MODE = "mode"
K_REQ_URL = "url"
K_REQ_MARKUP = "markup"
K_REQ_PAGE_TYPE = "pageType"
K_REQ_USE_PROXY_STRATEGY = "useProxyStrategy"
K_REQ_USE_SCRAPING_PROVIDER = "useScrapingProvider"
K_REQ_IDENTIFY_AS_BOT = "identifyAsBot"
