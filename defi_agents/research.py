"""Market research backed by an LLM, with explicit fallback data."""

import json
import logging
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional, Protocol, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from agent_engine.base import DEFAULT_EXPLORER_URL, BaseAgent
from agent_engine.errors import UpstreamError
from agent_engine.models import (
    AgentIntent,
    CallResult,
    Capability,
    ExecutionResult,
    RiskLevel,
    SimulationResult,
    SourcedData,
)
from agent_engine.parameters import ResearchParameters
from llm_adapter.client import strip_code_fence

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 5 * 60
HOUR_SECONDS = 60 * 60

RESEARCH_SYSTEM_PROMPT = (
    "You are a crypto and DeFi research assistant. Provide accurate, data-driven insights. "
    "Always answer with a single JSON document and no surrounding prose."
)


class CompletionClient(Protocol):
    async def complete(
        self,
        messages: Sequence[Mapping[str, str]],
        temperature: float,
        max_tokens: int,
    ) -> Optional[str]:
        ...


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class MarketDataItem(_Payload):
    symbol: str
    price: float
    change_24h: float = Field(alias="change24h")
    volume_24h: float = Field(alias="volume24h")
    market_cap: float = Field(alias="marketCap")
    sentiment: Literal["bullish", "bearish", "neutral"]


class NewsItem(_Payload):
    title: str
    summary: str
    source: str
    url: str
    published_at: float = Field(alias="publishedAt")
    sentiment: Literal["positive", "negative", "neutral"]
    relevance: float = Field(ge=0, le=1)


class TokenFundamentals(_Payload):
    holders: int
    transactions_24h: int = Field(alias="transactions24h")
    liquidity: float
    market_cap_rank: int = Field(alias="marketCapRank")


class TokenTechnicals(_Payload):
    rsi: float
    macd: str
    support: float
    resistance: float


class TokenAnalysis(_Payload):
    token: str
    fundamentals: TokenFundamentals
    technicals: TokenTechnicals
    recommendation: Literal["strong_buy", "buy", "hold", "sell", "strong_sell"]
    reasoning: str


class ProtocolAnalysis(_Payload):
    name: str
    tvl: float
    tvl_change_24h: float = Field(alias="tvlChange24h")
    apy: float
    risk_score: float = Field(alias="riskScore", ge=0, le=100)
    strengths: List[str]
    weaknesses: List[str]
    recommendation: str


class Trend(_Payload):
    topic: str
    score: float
    direction: Literal["up", "down", "stable"]


class TrendAnalysis(_Payload):
    trends: List[Trend]
    insights: List[str]
    recommendations: List[str]


_PAYLOAD_ADAPTERS: Dict[str, TypeAdapter] = {
    "market_data": TypeAdapter(List[MarketDataItem]),
    "news": TypeAdapter(List[NewsItem]),
    "token_analysis": TypeAdapter(TokenAnalysis),
    "protocol_analysis": TypeAdapter(ProtocolAnalysis),
    "trend_analysis": TypeAdapter(TrendAnalysis),
}


class ResearchAgent(BaseAgent):
    """Answers research operations from the LLM, or from fixed fallback data.

    Live answers are cached for ``CACHE_TTL_SECONDS`` keyed by the full
    parameter set. Fallback answers are never cached and always carry a
    ``degraded_reason``.
    """

    default_operation = "market_data"
    parameter_models = (ResearchParameters,)
    subject = "research query"
    failure_warning = "Research simulation failed"

    def __init__(
        self,
        client: Optional[CompletionClient] = None,
        clock: Optional[Callable[[], float]] = None,
        explorer_url: str = DEFAULT_EXPLORER_URL,
    ) -> None:
        super().__init__(
            "research-agent",
            "Research Agent",
            (
                Capability.MARKET_RESEARCH.value,
                "news_aggregation",
                "token_analysis",
                "protocol_analysis",
                "sentiment_analysis",
                "trend_detection",
            ),
            clock=clock,
            explorer_url=explorer_url,
        )
        self._client = client
        self._cache: Dict[str, Tuple[float, Any]] = {}
        if client is None:
            logger.warning("Research API key not provided. Research agent will use fallback data.")

    async def _simulate(self, intent: AgentIntent, params: ResearchParameters) -> SimulationResult:
        return SimulationResult(
            success=True,
            gas_estimate=0,
            value_estimate=0,
            risk=RiskLevel.LOW,
            calls=(),
            justification=_justification(params, params.query or intent.description),
            warnings=(),
            confidence=0.85,
        )

    async def _execute(self, intent: AgentIntent, params: ResearchParameters) -> ExecutionResult:
        query = params.query or intent.description
        sourced = await self.research(params, query)
        return ExecutionResult(
            success=True,
            calls=(CallResult(success=True, gas_used=0, return_data=json.dumps(sourced.data)),),
            gas_used=0,
            value_transferred=0,
            degraded_reason=sourced.degraded_reason,
            timestamp=self._clock(),
        )

    async def explain(self, result: ExecutionResult) -> str:
        if not result.success:
            return f"Research query failed: {result.error}"
        if not result.calls or not result.calls[0].return_data:
            return "Research data retrieved successfully."
        try:
            data = json.loads(result.calls[0].return_data)
        except ValueError:
            return "Research data retrieved successfully."
        summary = _format_research_data(data)
        if result.degraded_reason:
            summary += f" (fallback data: {result.degraded_reason})"
        return summary

    async def research(self, params: ResearchParameters, query: str = "") -> SourcedData:
        key = json.dumps({**params.model_dump(mode="json"), "query": query}, sort_keys=True)
        cached = self._cache.get(key)
        if cached is not None:
            if self._clock() - cached[0] < CACHE_TTL_SECONDS:
                return SourcedData(cached[1])
            del self._cache[key]

        sourced = await self._fetch(params, query)
        if not sourced.degraded:
            self._cache[key] = (self._clock(), sourced.data)
        return sourced

    async def get_sentiment(self, query: str) -> Dict[str, Any]:
        params = ResearchParameters(operation="news", query=query, timeframe="24h")
        news = (await self.research(params, query)).data
        total = len(news)
        positive = sum(1 for item in news if item["sentiment"] == "positive")
        negative = sum(1 for item in news if item["sentiment"] == "negative")
        score = (positive - negative) / total * 100 if total else 0.0
        if score > 20:
            label = "bullish"
        elif score < -20:
            label = "bearish"
        else:
            label = "neutral"
        return {"score": score, "label": label, "confidence": abs(score) / 100}

    def clear_cache(self) -> None:
        self._cache.clear()

    async def _fetch(self, params: ResearchParameters, query: str) -> SourcedData:
        fallback = self._fallback(params, query)
        if self._client is None:
            return SourcedData(fallback, "Research API key not configured")
        if params.operation == "market_data" and not params.tokens:
            return SourcedData(fallback, "No tokens requested")

        try:
            content = await self._client.complete(
                [
                    {"role": "system", "content": RESEARCH_SYSTEM_PROMPT},
                    {"role": "user", "content": _prompt(params, query)},
                ],
                temperature=0.7,
                max_tokens=1000,
            )
        except UpstreamError as exc:
            logger.warning("Research API call failed, using fallback data: %s", exc)
            return SourcedData(fallback, f"Research API error: {exc}")

        if not content:
            logger.warning("Research API returned no content, using fallback data")
            return SourcedData(fallback, "Research API returned no content")
        try:
            payload = _PAYLOAD_ADAPTERS[params.operation].validate_json(strip_code_fence(content))
        except ValidationError as exc:
            logger.warning("Unusable research answer, using fallback data: %s", exc.error_count())
            return SourcedData(fallback, "Research API answer could not be parsed")
        return SourcedData(_dump(payload))

    def _fallback(self, params: ResearchParameters, query: str) -> Any:
        if params.operation == "market_data":
            return _fallback_market_data()
        if params.operation == "news":
            return _fallback_news(self._clock())
        if params.operation == "token_analysis":
            return _fallback_token_analysis(params.tokens[0] if params.tokens else query)
        if params.operation == "protocol_analysis":
            return _fallback_protocol_analysis(params.protocols[0] if params.protocols else query)
        return _fallback_trends()


def _dump(payload: Any) -> Any:
    if isinstance(payload, list):
        return [item.model_dump(by_alias=True) for item in payload]
    return payload.model_dump(by_alias=True)


def _prompt(params: ResearchParameters, query: str) -> str:
    if params.operation == "market_data":
        return (
            "Get current market data including price, 24h change, volume, and market cap for: "
            f"{', '.join(params.tokens)}. Respond with a JSON array of objects with keys "
            "symbol, price, change24h, volume24h, marketCap, sentiment (bullish|bearish|neutral)."
        )
    if params.operation == "news":
        return (
            f"Find recent crypto news related to: {query}. Timeframe: {params.timeframe}. "
            "Include sentiment analysis. Respond with a JSON array of objects with keys title, summary, "
            "source, url, publishedAt (unix seconds), sentiment (positive|negative|neutral), relevance (0-1)."
        )
    if params.operation == "token_analysis":
        token = params.tokens[0] if params.tokens else query
        return (
            f"Provide comprehensive technical and fundamental analysis for {token}. Include holder count, "
            "transaction volume, RSI, MACD, support/resistance levels, and investment recommendation with "
            "reasoning. Respond with a JSON object with keys token, fundamentals {holders, transactions24h, "
            "liquidity, marketCapRank}, technicals {rsi, macd, support, resistance}, recommendation "
            "(strong_buy|buy|hold|sell|strong_sell), reasoning."
        )
    if params.operation == "protocol_analysis":
        protocol = params.protocols[0] if params.protocols else query
        return (
            f"Analyze {protocol} DeFi protocol. Include TVL, APY, risk assessment, strengths, weaknesses, "
            "and recommendation. Respond with a JSON object with keys name, tvl, tvlChange24h, apy, "
            "riskScore (0-100), strengths, weaknesses, recommendation."
        )
    return (
        f"Analyze current trends in crypto/DeFi related to: {query}. Timeframe: {params.timeframe}. "
        "Provide trending topics, insights, and actionable recommendations. Respond with a JSON object "
        "with keys trends [{topic, score, direction (up|down|stable)}], insights, recommendations."
    )


def _justification(params: ResearchParameters, query: str) -> str:
    if params.operation == "market_data":
        tokens = ", ".join(params.tokens) or "requested tokens"
        return f"Fetching real-time market data for {tokens} including price, volume, and sentiment."
    if params.operation == "news":
        return f"Searching for relevant news and updates related to: {query}. Analyzing sentiment and relevance."
    if params.operation == "token_analysis":
        token = params.tokens[0] if params.tokens else query
        return f"Conducting comprehensive technical and fundamental analysis for {token}."
    if params.operation == "protocol_analysis":
        protocol = params.protocols[0] if params.protocols else query
        return f"Evaluating {protocol} protocol: TVL, yields, risk factors, and recommendations."
    return f"Analyzing current trends and market sentiment for: {query}. Providing actionable insights."


def _format_research_data(data: Any) -> str:
    if isinstance(data, list) and data and "symbol" in data[0]:
        items = [
            f"{item['symbol']}: ${item['price']:g} ({'+' if item['change24h'] > 0 else ''}{item['change24h']:.2f}%)"
            for item in data[:3]
        ]
        return f"Market Data: {', '.join(items)}"
    if isinstance(data, list) and data and "title" in data[0]:
        top = data[0]
        return f'Found {len(data)} relevant news articles. Top: "{top["title"]}" ({top["sentiment"]} sentiment)'
    if isinstance(data, dict) and "reasoning" in data:
        return f"Analysis: {data['recommendation'].upper()}. {data['reasoning']}"
    if isinstance(data, dict) and "tvl" in data:
        return (
            f"{data['name']}: TVL ${data['tvl']:,.0f}, APY {data['apy']:g}%, "
            f"risk score {data['riskScore']:g}/100. {data['recommendation']}"
        )
    if isinstance(data, dict) and data.get("trends"):
        return f"Top trends: {', '.join(trend['topic'] for trend in data['trends'][:3])}"
    return "Research completed successfully."


def _fallback_market_data() -> List[Dict[str, Any]]:
    return [
        {
            "symbol": "STT",
            "price": 1.02,
            "change24h": 2.3,
            "volume24h": 5_000_000,
            "marketCap": 50_000_000,
            "sentiment": "bullish",
        },
        {
            "symbol": "ETH",
            "price": 2150,
            "change24h": -1.5,
            "volume24h": 12_000_000_000,
            "marketCap": 250_000_000_000,
            "sentiment": "neutral",
        },
    ]


def _fallback_news(now: float) -> List[Dict[str, Any]]:
    return [
        {
            "title": "Somnia Network Achieves 400,000 TPS Milestone",
            "summary": (
                "Somnia blockchain demonstrates unprecedented throughput in latest stress test, "
                "positioning itself as a leader in high-performance L1 networks."
            ),
            "source": "CryptoNews",
            "url": "https://example.com/news1",
            "publishedAt": now - 2 * HOUR_SECONDS,
            "sentiment": "positive",
            "relevance": 0.95,
        },
        {
            "title": "DeFi TVL Reaches New High Across Multiple Chains",
            "summary": (
                "Total value locked in DeFi protocols surpasses previous records as institutional "
                "adoption continues to grow."
            ),
            "source": "DeFi Pulse",
            "url": "https://example.com/news2",
            "publishedAt": now - 5 * HOUR_SECONDS,
            "sentiment": "positive",
            "relevance": 0.75,
        },
        {
            "title": "Regulatory Clarity Boosts Market Sentiment",
            "summary": (
                "New regulatory frameworks provide clearer guidelines for crypto operations, "
                "reducing uncertainty in the market."
            ),
            "source": "Blockchain Times",
            "url": "https://example.com/news3",
            "publishedAt": now - 8 * HOUR_SECONDS,
            "sentiment": "positive",
            "relevance": 0.60,
        },
    ]


def _fallback_token_analysis(token: str) -> Dict[str, Any]:
    return {
        "token": token,
        "fundamentals": {
            "holders": 15420,
            "transactions24h": 8500,
            "liquidity": 5_000_000,
            "marketCapRank": 150,
        },
        "technicals": {"rsi": 62, "macd": "bullish crossover", "support": 0.95, "resistance": 1.15},
        "recommendation": "buy",
        "reasoning": (
            "Strong fundamentals with increasing holder count and transaction volume. Technical "
            "indicators suggest bullish momentum with RSI in healthy range. Good liquidity supports "
            "stable price action."
        ),
    }


def _fallback_protocol_analysis(protocol: str) -> Dict[str, Any]:
    return {
        "name": protocol,
        "tvl": 50_000_000,
        "tvlChange24h": 5.2,
        "apy": 12.5,
        "riskScore": 35,
        "strengths": [
            "Audited smart contracts by top security firms",
            "Strong community and active development",
            "Competitive yields with sustainable tokenomics",
        ],
        "weaknesses": [
            "Relatively new protocol with limited track record",
            "Concentrated liquidity in few pools",
        ],
        "recommendation": (
            "Suitable for moderate risk tolerance. Consider diversifying across multiple protocols."
        ),
    }


def _fallback_trends() -> Dict[str, Any]:
    return {
        "trends": [
            {"topic": "Layer 1 Performance", "score": 85, "direction": "up"},
            {"topic": "Staking Yields", "score": 72, "direction": "stable"},
            {"topic": "DeFi Innovation", "score": 68, "direction": "up"},
        ],
        "insights": [
            "High-performance L1s gaining market share due to scalability improvements",
            "Staking remains popular with consistent yields around 10-15%",
            "New DeFi primitives focusing on capital efficiency and user experience",
        ],
        "recommendations": [
            "Consider exposure to high-performance blockchain ecosystems",
            "Diversify staking across multiple validators for risk management",
            "Monitor emerging DeFi protocols with innovative mechanisms",
        ],
    }
