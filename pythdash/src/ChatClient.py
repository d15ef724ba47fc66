"""ChatClient: DeepSeek chat-completion client and offline demo responder.

Endpoint: POST https://api.deepseek.com/v1/chat/completions
Auth: Bearer API key
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from .errors import EmptyCompletion, UpstreamUnavailable
from .HttpClient import BaseHttpClient

logger = logging.getLogger(__name__)

DEFAULT_CHAT_URL = "https://api.deepseek.com/v1/chat/completions"
DEFAULT_MODEL = "deepseek-chat"

Role = Literal["user", "assistant", "system"]


@dataclass(frozen=True)
class ChatMessage:
    """One message of the chat transcript.

    :ivar role: "user", "assistant" or "system".
    :ivar content: Message text.
    """

    role: Role
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


SYSTEM_PROMPT = """You are a Pyth Network expert and DeFi trading assistant. Your role is to:

1. Explain the functionality of Pyth Price Feeds and Pyth Entropy in clear, accessible terms.
2. Provide tips and strategies for builders creating dApps with Pyth data.
3. Explain how real-time, high-fidelity data from Pyth can be used for DeFi protocols, on-chain games, and prediction markets.
4. Suggest ways to combine Price Feeds and Entropy for novel applications (e.g., randomized NFT traits based on market conditions, fair lottery systems tied to asset volatility, game mechanics that respond to real-world market data).
5. Offer specific technical guidance when appropriate.

Keep your responses concise, practical, and focused on actionable insights for developers."""

WELCOME_MESSAGE = """Hi! I'm your Pyth assistant. I can help with:

- Pyth Price Feeds: real-time oracle data for 400+ assets
- Pyth Entropy: verifiable on-chain randomness
- Ideas that combine both
- Implementation details and best practices

What would you like to know about building with Pyth?"""

ERROR_REPLY = (
    "Sorry, I encountered an error. Please try again or check your API key configuration."
)

_PRICE_FEED_REPLY = """Pyth Price Feeds are pull-based oracles that provide high-fidelity, real-time market data. Unlike push oracles, Pyth uses a "Pull" model:

1. Fetch: retrieve price update data from Hermes (Pyth's data service)
2. Update: submit this data to the on-chain Pyth contract, paying the update fee
3. Consume: your contract reads the fresh price data

This gives you control over data freshness and keeps gas costs down. Common use cases:
- Perpetual futures
- Lending protocols with accurate collateral pricing
- Options and derivatives platforms
- NFT pricing based on real-world assets

What are you building?"""

_RANDOMNESS_REPLY = """Pyth Entropy generates verifiable random numbers on-chain. It works in three steps:

1. Request: your contract submits a commitment to a user random value
2. Generate: the provider combines your value with its own secret
3. Reveal: the final random number is computed on-chain and can be verified

Applications:
- Fair lotteries with provably random winner selection
- Games: loot drops, spawns, map generation
- NFTs: randomized traits at mint time
- Prediction markets: random sampling for resolution

Tip: combine Price Feeds and Entropy, e.g. higher volatility means rarer drops."""

_COMBINE_REPLY = """Ways to combine Pyth Price Feeds and Entropy:

Volatility-based game mechanics
- Use price volatility to adjust loot drop rates

Market-driven NFT collections
- Generate traits from the BTC/ETH price at mint time
- Randomize rarity with Entropy, weighted by market conditions

Fair prediction markets
- Use Entropy for random sampling of data points
- Use Price Feeds for settlement data

DeFi
- Random yield boosts tied to market performance
- Lottery-style savings with odds based on TVL

The idea: let real-world data (Price Feeds) shape on-chain randomness (Entropy)."""

_FALLBACK_REPLY = """Pyth Network offers two primitives for your dApp:

Pyth Price Feeds provide real-time data for 400+ assets across crypto, equities, FX and commodities.

Pyth Entropy generates secure random numbers on-chain for games, NFTs and lotteries.

Ask me about:
- The pull oracle workflow
- Use cases for Entropy
- Combining Price Feeds and randomness
- Best practices for your application

What are you building?"""

# Checked in order; first match wins
_DEMO_CATEGORIES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("price feed", "oracle"), _PRICE_FEED_REPLY),
    (("entropy", "random"), _RANDOMNESS_REPLY),
    (("combine", "innovative"), _COMBINE_REPLY),
)


def demo_reply(user_text: str) -> str:
    """Return a canned answer matched on keywords.

    Used when no API key is configured.

    :param user_text: The user's message.
    :returns: Canned response text.
    """
    lower = user_text.lower()
    for keywords, reply in _DEMO_CATEGORIES:
        if any(keyword in lower for keyword in keywords):
            return reply
    return _FALLBACK_REPLY


class ChatClient(BaseHttpClient):
    """Client for an OpenAI-compatible chat-completion endpoint.

    :cvar TEMPERATURE: Sampling temperature.
    :cvar MAX_TOKENS: Response token budget.
    :ivar url: Chat-completion URL.
    :ivar model: Model name.
    """

    DEFAULT_TIMEOUT = 60.0
    TEMPERATURE = 0.7
    MAX_TOKENS = 2000

    def __init__(
        self,
        url: str = DEFAULT_CHAT_URL,
        model: str = DEFAULT_MODEL,
        system_prompt: str = SYSTEM_PROMPT,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.url = url
        self.model = model
        self.system_prompt = system_prompt

    def build_payload(self, transcript: list[ChatMessage]) -> dict:
        """Build the request body with the system directive first."""
        messages = [{"role": "system", "content": self.system_prompt}]
        messages.extend(m.to_dict() for m in transcript)
        return {
            "model": self.model,
            "messages": messages,
            "temperature": self.TEMPERATURE,
            "max_tokens": self.MAX_TOKENS,
        }

    async def converse(self, transcript: list[ChatMessage], api_key: str) -> str:
        """Send the conversation and return the assistant's reply.

        :param transcript: Conversation so far, oldest first.
        :param api_key: Bearer credential.
        :returns: Assistant reply text.
        :raises UpstreamUnavailable: On network failure or non-2xx status.
        :raises EmptyCompletion: If the response has no choices.
        """
        response = await self._post(
            self.url,
            json=self.build_payload(transcript),
            headers={"Authorization": f"Bearer {api_key}"},
        )
        data = self._json(response)

        choices = data.get("choices")
        if not choices:
            raise EmptyCompletion()
        try:
            content = choices[0]["message"]["content"]
        except (KeyError, TypeError, IndexError) as e:
            raise UpstreamUnavailable(f"Failed to parse chat response: {e}") from e

        usage = data.get("usage") or {}
        logger.debug(f"Chat completion received (tokens={usage.get('total_tokens')})")
        return content or ""
