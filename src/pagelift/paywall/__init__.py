from .detector import (
    PaywallDetectionResult,
    PaywallTextResult,
    detect_paywall_in_text,
    detect_paywall_signals,
    get_site_paywall_selectors,
    is_known_paywalled_site,
)

__all__ = [
    "PaywallDetectionResult",
    "PaywallTextResult",
    "detect_paywall_in_text",
    "detect_paywall_signals",
    "get_site_paywall_selectors",
    "is_known_paywalled_site",
]
