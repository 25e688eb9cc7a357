"""
Heuristic classifiers for page URLs, client devices and event labels.

These are pure functions of their input. Reports receive classifier
instances, so the rules can be replaced without touching aggregation code.
"""
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlparse

from user_agents import parse as parse_ua

from behavior_analytics.schemas.events import DeviceInfo, EventType

EVENT_LABELS = {
    EventType.PAGE_VIEW.value: "Page View",
    EventType.PRODUCT_VIEWED.value: "Product View",
    EventType.PRODUCT_CLICK.value: "Product Click",
    EventType.PRODUCT_ADDED_TO_CART.value: "Add to Cart",
    EventType.PRODUCT_REMOVED_FROM_CART.value: "Remove from Cart",
    EventType.ORDER_CREATED.value: "Order Creation",
    EventType.PAYMENT_COMPLETED.value: "Payment Complete",
    EventType.SEARCH.value: "Search",
}


def event_label(event_type: str) -> str:
    """Human label for an event kind; unknown kinds label as themselves."""
    return EVENT_LABELS.get(event_type, event_type)


class PageClassifier:
    """Maps page URLs to coarse page categories."""

    def page_type(self, url: Optional[str]) -> str:
        """
        Journey category of an absolute URL.

        Returns "Unknown" when there is no URL and "Invalid URL" when it
        is not an absolute URL.
        """
        if not url:
            return "Unknown"

        parsed = urlparse(url)
        if not parsed.scheme or not parsed.netloc:
            return "Invalid URL"

        path = parsed.path or "/"
        if path in ("/", "/home"):
            return "Homepage"
        if "/product" in path and "/products" not in path:
            return "Product"
        if "/category" in path or "/products" in path:
            return "Category"
        if "/cart" in path:
            return "Cart"
        if "/checkout" in path:
            return "Checkout"
        if "/account" in path:
            return "Account"
        if "/search" in path:
            return "Search"
        return "Other"

    def listing_page(self, url: Optional[str]) -> str:
        """Category used by the conversion-by-page report."""
        path = "unknown"
        if url:
            parsed = urlparse(url)
            path = parsed.path if parsed.scheme and parsed.netloc else url

        if path == "/" or "/home" in path:
            return "Homepage"
        if "/product" in path and "/products" not in path:
            return "Product Detail"
        if "/category" in path or "/products" in path:
            return "Product Listing"
        if "/cart" in path:
            return "Shopping Cart"
        if "/wishlist" in path:
            return "Wishlist"
        if "checkout/success" in path:
            return "Checkout Success"
        return "Other"


@dataclass(frozen=True)
class DeviceProfile:
    device_type: str
    os: str
    browser: str


UNKNOWN = "Unknown"

# Substring fallbacks, checked in order against the lowercased user agent
OS_HINTS = (
    ("windows", "Windows"),
    ("iphone", "iOS"),
    ("ipad", "iOS"),
    ("android", "Android"),
    ("mac os", "Mac OS X"),
    ("linux", "Linux"),
)
BROWSER_HINTS = (
    ("edg", "Edge"),
    ("opr", "Opera"),
    ("chrome", "Chrome"),
    ("firefox", "Firefox"),
    ("safari", "Safari"),
)


class DeviceClassifier:
    """
    Derives device type, OS and browser from a `deviceInfo` blob.

    The user agent is parsed with `user_agents`; where it says nothing
    useful we fall back to substring hints, then to the screen width.
    """

    mobile_max_width = 768
    tablet_max_width = 1024

    def classify(self, device_info: Any) -> DeviceProfile:
        info = DeviceInfo.model_validate(device_info if isinstance(device_info, dict) else {})
        agent = info.user_agent or ""
        lowered = agent.lower()
        ua = parse_ua(agent) if agent else None

        return DeviceProfile(
            device_type=self._device_type(ua, lowered, info.screen_width),
            os=self._os(ua, lowered, info.platform),
            browser=self._browser(ua, lowered),
        )

    def _device_type(self, ua: Any, lowered: str, screen_width: int) -> str:
        if ua is not None:
            if ua.is_bot:
                return "Bot"
            if ua.is_tablet:
                return "Tablet"
            if ua.is_mobile:
                return "Mobile"
            if ua.is_pc:
                return "Desktop"

        if "ipad" in lowered or "tablet" in lowered:
            return "Tablet"
        if "mobi" in lowered or "iphone" in lowered or "android" in lowered:
            return "Mobile"

        if screen_width > 0:
            if screen_width < self.mobile_max_width:
                return "Mobile"
            if screen_width < self.tablet_max_width:
                return "Tablet"
            return "Desktop"
        return UNKNOWN

    def _os(self, ua: Any, lowered: str, platform: Optional[str]) -> str:
        if ua is not None and ua.os.family not in ("Other", ""):
            return ua.os.family
        for hint, name in OS_HINTS:
            if hint in lowered:
                return name
        return platform or UNKNOWN

    def _browser(self, ua: Any, lowered: str) -> str:
        if ua is not None and ua.browser.family not in ("Other", ""):
            return ua.browser.family
        for hint, name in BROWSER_HINTS:
            if hint in lowered:
                return name
        return UNKNOWN
