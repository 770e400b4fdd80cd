"""Consent-prompt handlers, one per platform plus site rules and a generic fallback."""

from .base import CmpHandler, HandlerKind
from .generic import BannerRoot, GenericHandler, find_banner_root
from .sites import SiteRuleHandler
from .vendors import (
    VENDOR_PROFILES,
    DidomiHandler,
    IubendaHandler,
    VendorApiHandler,
    VendorHandler,
    VendorProfile,
)

__all__ = [
    "BannerRoot",
    "CmpHandler",
    "DidomiHandler",
    "GenericHandler",
    "HandlerKind",
    "IubendaHandler",
    "SiteRuleHandler",
    "VENDOR_PROFILES",
    "VendorApiHandler",
    "VendorHandler",
    "VendorProfile",
    "find_banner_root",
]
