"""
Pyth Dashboard - Pull-Oracle and Entropy Client Module

This module provides the dashboard core:
- PriceClient: Hermes price quotes and signed update payloads
- OracleUpdater: On-chain price updates and settled reads
- RandomnessClient: Entropy requests, polling and reveal
- ChatClient: Chat-completion assistant with offline demo replies
- AppState / Dashboard: Shared state and user-action call sites
"""

from .AppState import HISTORY_CAPACITY, AppState, PriceHistoryPoint
from .ChatClient import ChatClient, ChatMessage, demo_reply
from .Dashboard import Dashboard
from .errors import (
    ChainSubmissionFailed,
    DashboardError,
    EmptyCompletion,
    FeedDataMissing,
    StaleOrMissingQuote,
    UpstreamUnavailable,
    WalletNotConnected,
)
from .OracleUpdater import OracleUpdater
from .PriceClient import PriceClient
from .PriceFeedRegistry import PRICE_FEEDS, PriceFeedDescriptor, get_feed
from .PricePoller import PricePoller
from .PriceQuote import PriceQuote, format_price, to_display_value
from .RandomnessClient import FortunaClient, RandomnessClient, scale_to_range
from .RandomnessRequest import RandomnessRequest, RandomnessResult, RequestStatus
from .SigningConnection import SigningConnection, Web3SigningConnection

__all__ = [
    "AppState",
    "ChainSubmissionFailed",
    "ChatClient",
    "ChatMessage",
    "Dashboard",
    "DashboardError",
    "EmptyCompletion",
    "FeedDataMissing",
    "FortunaClient",
    "HISTORY_CAPACITY",
    "OracleUpdater",
    "PRICE_FEEDS",
    "PriceClient",
    "PriceFeedDescriptor",
    "PriceHistoryPoint",
    "PricePoller",
    "PriceQuote",
    "RandomnessClient",
    "RandomnessRequest",
    "RandomnessResult",
    "RequestStatus",
    "SigningConnection",
    "StaleOrMissingQuote",
    "UpstreamUnavailable",
    "WalletNotConnected",
    "Web3SigningConnection",
    "demo_reply",
    "format_price",
    "get_feed",
    "scale_to_range",
    "to_display_value",
]
