"""
Base Analysis Delegate Interface

Abstract interface for risk commentary backends (LLMs, canned text, etc.).
The engine never blocks on a delegate and treats its output as opaque text.
"""

import logging
from abc import ABC, abstractmethod


logger = logging.getLogger(__name__)

FALLBACK_ANALYSIS = "AI Analysis temporarily unavailable due to connection issues."
EMPTY_ANALYSIS = "Analysis incomplete."


def build_prompt(protocol: str, asset: str, score: float) -> str:
    return (
        "Act as a Senior DeFi Risk Analyst.\n"
        f"Analyze the current risk profile for lending {asset} on {protocol}.\n"
        f"The current calculated safety score is {score}/100.\n\n"
        "Provide a concise, 3-bullet point summary of potential risks (e.g., smart contract bugs, "
        "liquidity crises, depegging, governance attacks) that might be contributing to this score "
        "or could cause it to drop further.\n"
        "Keep the tone professional, technical, and urgent if the score is low.\n"
        "Do not include intro or outro text, just the bullet points."
    )


class BaseAnalysisDelegate(ABC):
    """
    Abstract base class for all analysis delegates.

    Subclasses implement generate(); callers use analyze(), which never
    raises: any failure resolves to FALLBACK_ANALYSIS.
    """

    name = "base"

    async def analyze(self, protocol: str, asset: str, score: float) -> str:
        """
        Produce risk commentary for a position.

        Args:
            protocol: Lending protocol name
            asset: Deposited asset symbol
            score: Current safety score (0-100)

        Returns:
            Commentary text, EMPTY_ANALYSIS for an empty reply, or
            FALLBACK_ANALYSIS on any failure
        """
        try:
            text = await self.generate(protocol, asset, score)
        except Exception:
            logger.exception("%s analysis failed for %s/%s", self.name, protocol, asset)
            return FALLBACK_ANALYSIS

        return text or EMPTY_ANALYSIS

    @abstractmethod
    async def generate(self, protocol: str, asset: str, score: float) -> str:
        """
        Backend-specific commentary generation. May raise.
        """
        pass
