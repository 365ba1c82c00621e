"""Industry profiles: volatility bounds and narrative context per industry."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .horizons import HORIZONS


@dataclass(frozen=True)
class IndustryProfile:
    """Bounds and narrative context for one industry."""

    name: str
    growth_context: str
    sentiment_context: str
    # Max fractional deviation from the current price, either direction
    bounds: Dict[str, float]
    drivers: Tuple[str, ...] = field(default_factory=tuple)
    risks: Tuple[str, ...] = field(default_factory=tuple)

    def bound(self, horizon: str) -> float:
        return self.bounds[horizon]


def _bounds(one_month: float, three_months: float, six_months: float, one_year: float) -> Dict[str, float]:
    return dict(zip(HORIZONS, (one_month, three_months, six_months, one_year)))


DEFAULT_INDUSTRY = "Default"

_PROFILES: Dict[str, IndustryProfile] = {
    "Technology": IndustryProfile(
        name="Technology",
        growth_context="higher growth potential but can be volatile due to rapid innovation cycles",
        sentiment_context="technological innovation and digital transformation trends",
        bounds=_bounds(0.15, 0.25, 0.40, 0.60),
        drivers=(
            "Expansion of cloud services and enterprise solutions",
            "Growing demand for AI and machine learning capabilities",
            "Strategic partnerships with major enterprise clients",
            "Recurring revenue from subscription-based services",
            "Expansion into emerging markets with growing tech adoption",
        ),
        risks=(
            "Increasing regulatory scrutiny on data privacy and market power",
            "Rising competition from emerging technology players",
            "Rapid product cycles requiring continuous R&D investment",
            "Dependency on semiconductor supply chain stability",
            "Talent acquisition and retention challenges",
        ),
    ),
    "Financial": IndustryProfile(
        name="Financial",
        growth_context="moderate growth potential that is sensitive to interest rates and economic cycles",
        sentiment_context="interest rates and financial market conditions",
        bounds=_bounds(0.07, 0.15, 0.25, 0.35),
        drivers=(
            "Interest rate environment supporting lending margins",
            "Growth in digital banking and payment solutions",
            "Wealth management fee income expansion",
            "Strong capital position enabling shareholder returns",
            "Expansion of investment banking and advisory services",
        ),
        risks=(
            "Interest rate volatility affecting net interest margins",
            "Regulatory changes impacting capital requirements",
            "Credit quality deterioration during economic slowdowns",
            "Increasing competition from fintech disruptors",
            "Cybersecurity threats targeting financial data",
        ),
    ),
    "Healthcare": IndustryProfile(
        name="Healthcare",
        growth_context="stable growth with defensive qualities during economic downturns",
        sentiment_context="healthcare sector dynamics and regulatory environment",
        bounds=_bounds(0.08, 0.18, 0.30, 0.45),
        drivers=(
            "Aging population increasing healthcare demand",
            "New drug approvals and expanding product pipeline",
            "Strategic acquisitions in growth therapeutic areas",
            "Digital health initiatives expanding market reach",
            "Research and development pipeline progress",
        ),
        risks=(
            "Drug pricing pressure from payers and regulators",
            "Patent expirations on key products",
            "Regulatory approval delays for pipeline products",
            "Litigation risks related to product liability",
            "Healthcare reform uncertainty affecting reimbursement",
        ),
    ),
    "Consumer Goods": IndustryProfile(
        name="Consumer Goods",
        growth_context="modest but reliable growth with focus on stable cash flows",
        sentiment_context="consumer spending patterns and brand strength",
        bounds=_bounds(0.06, 0.12, 0.20, 0.30),
        drivers=(
            "Brand strength driving premium pricing power",
            "Expansion into growing international markets",
            "E-commerce and direct-to-consumer channel growth",
            "Product innovation addressing emerging trends",
            "Supply chain efficiencies lifting operating margins",
        ),
        risks=(
            "Input cost inflation pressuring margins",
            "Private label competition and price sensitivity",
            "Changing consumer preferences requiring rapid adaptation",
            "Supply chain disruptions affecting product availability",
            "Foreign exchange volatility impacting international revenues",
        ),
    ),
    "Retail": IndustryProfile(
        name="Retail",
        growth_context="competitive growth dependent on consumer spending patterns",
        sentiment_context="retail sector trends and e-commerce adoption",
        bounds=_bounds(0.10, 0.20, 0.30, 0.45),
        drivers=(
            "E-commerce platform expansion and omnichannel integration",
            "Fulfillment efficiency and last-mile delivery optimization",
            "Private label development increasing margins",
            "Loyalty program growth driving repeat purchases",
            "International market expansion opportunities",
        ),
        risks=(
            "E-commerce competition intensifying margin pressure",
            "Rising logistics and fulfillment costs",
            "Consumer spending sensitivity to economic conditions",
            "Store traffic declines in physical locations",
            "Inventory management challenges",
        ),
    ),
    "Automotive": IndustryProfile(
        name="Automotive",
        growth_context="cyclical growth dependent on economic conditions and innovation",
        sentiment_context="automotive industry transformation and EV adoption",
        bounds=_bounds(0.15, 0.25, 0.40, 0.70),
        drivers=(
            "Electric vehicle portfolio expansion and adoption",
            "Autonomous driving technology development",
            "Software services and subscription revenue growth",
            "Strategic partnerships for technology development",
            "Production efficiency improvements and cost reduction",
        ),
        risks=(
            "Supply chain constraints impacting production",
            "Increasing competition in the electric vehicle segment",
            "Emissions regulation requiring substantial investment",
            "Production ramp challenges for new platforms",
            "Consumer demand sensitivity to economic cycles",
        ),
    ),
    "Semiconductor": IndustryProfile(
        name="Semiconductor",
        growth_context="high growth potential but subject to cyclical demand and supply constraints",
        sentiment_context="semiconductor demand cycles and manufacturing capacity",
        bounds=_bounds(0.18, 0.30, 0.50, 0.80),
        drivers=(
            "Growing demand from AI and cloud computing applications",
            "Next-generation design wins with major customers",
            "Advanced process node technology leadership",
            "Expanding applications in automotive and IoT markets",
            "Supply constraints supporting pricing",
        ),
        risks=(
            "Cyclical demand creating revenue volatility",
            "Manufacturing capacity constraints limiting growth",
            "Geopolitical tensions affecting global supply chains",
            "Rapid technology transitions requiring capital investment",
            "Increasing competition from new entrants",
        ),
    ),
    "Entertainment": IndustryProfile(
        name="Entertainment",
        growth_context="growth tied to consumer discretionary spending and content popularity",
        sentiment_context="consumer entertainment preferences and content monetization",
        bounds=_bounds(0.10, 0.20, 0.35, 0.50),
        drivers=(
            "Original content driving subscriber growth",
            "International expansion increasing addressable market",
            "Merchandising and licensing revenue diversification",
            "Partnerships expanding distribution channels",
            "Interactive and gaming content integration",
        ),
        risks=(
            "Rising content acquisition and production costs",
            "Competition for viewer attention and subscribers",
            "Intellectual property protection challenges",
            "Shifting consumer viewing habits",
            "Regional content regulations limiting expansion",
        ),
    ),
    DEFAULT_INDUSTRY: IndustryProfile(
        name=DEFAULT_INDUSTRY,
        growth_context="varying growth patterns depending on specific company factors",
        sentiment_context="current market and industry trends",
        bounds=_bounds(0.10, 0.20, 0.35, 0.50),
        drivers=(
            "Revenue growth momentum in recent quarters",
            "Operating margin expansion from cost discipline",
            "Strategic acquisitions expanding the product portfolio",
            "Technology adoption improving productivity",
            "Capital returns through buybacks and dividends",
        ),
        risks=(
            "Intensifying competition in core markets",
            "Regulatory scrutiny and compliance costs",
            "Macroeconomic slowdown reducing demand",
            "Cybersecurity threats and data privacy concerns",
            "Elevated valuation increasing vulnerability to corrections",
        ),
    ),
}

# Sector names reported by market-data vendors
_ALIASES: Dict[str, str] = {
    "tech": "Technology",
    "information technology": "Technology",
    "financial services": "Financial",
    "financials": "Financial",
    "banks": "Financial",
    "health care": "Healthcare",
    "consumer defensive": "Consumer Goods",
    "consumer staples": "Consumer Goods",
    "auto manufacturers": "Automotive",
    "semiconductors": "Semiconductor",
    "media": "Entertainment",
}

_SYMBOL_INDUSTRIES: Dict[str, str] = {
    "AAPL": "Technology",
    "MSFT": "Technology",
    "GOOG": "Technology",
    "GOOGL": "Technology",
    "META": "Technology",
    "AMZN": "Retail",
    "WMT": "Retail",
    "TGT": "Retail",
    "TSLA": "Automotive",
    "NVDA": "Semiconductor",
    "AMD": "Semiconductor",
    "INTC": "Semiconductor",
    "JPM": "Financial",
    "BAC": "Financial",
    "WFC": "Financial",
    "GS": "Financial",
    "V": "Financial",
    "MA": "Financial",
    "JNJ": "Healthcare",
    "PFE": "Healthcare",
    "MRK": "Healthcare",
    "PG": "Consumer Goods",
    "KO": "Consumer Goods",
    "PEP": "Consumer Goods",
    "DIS": "Entertainment",
    "NFLX": "Entertainment",
}


def resolve_industry_name(industry: Optional[str]) -> Optional[str]:
    """Map a free-form industry or sector name onto a known profile name."""
    if not industry or not isinstance(industry, str):
        return None
    cleaned = industry.strip()
    for name in _PROFILES:
        if name.lower() == cleaned.lower():
            return None if name == DEFAULT_INDUSTRY else name
    return _ALIASES.get(cleaned.lower())


def get_industry_profile(industry: Optional[str]) -> IndustryProfile:
    """
    Look up the profile for an industry.

    Args:
        industry: Industry or sector name, case-insensitive

    Returns:
        The matching profile, or the conservative default profile
    """
    name = resolve_industry_name(industry)
    return _PROFILES[name] if name else _PROFILES[DEFAULT_INDUSTRY]


def determine_industry(symbol: str) -> Optional[str]:
    """Return the industry of a well-known symbol, or None."""
    return _SYMBOL_INDUSTRIES.get((symbol or "").strip().upper())


def market_cap_tier(market_cap) -> str:
    """Render a market cap with its size tier, e.g. '$2.80 trillion (Large Cap)'."""
    if isinstance(market_cap, bool) or not isinstance(market_cap, (int, float)) or market_cap <= 0:
        return "Unknown"

    if market_cap >= 1e12:
        return f"${market_cap / 1e12:.2f} trillion (Large Cap)"
    if market_cap >= 1e9:
        if market_cap >= 200e9:
            tier = "Large"
        elif market_cap >= 10e9:
            tier = "Mid"
        else:
            tier = "Small"
        return f"${market_cap / 1e9:.2f} billion ({tier} Cap)"
    return f"${market_cap / 1e6:.2f} million (Small Cap)"


def list_industries() -> List[str]:
    """Names of every industry with a dedicated profile."""
    return [name for name in _PROFILES if name != DEFAULT_INDUSTRY]
