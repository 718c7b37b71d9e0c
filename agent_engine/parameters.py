"""Typed operation parameters, discriminated on ``operation``.

Classifier output arrives as an open camelCase map; every agent converts it
through :func:`parse_operation_parameters` before use.
"""

from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Type, Union, get_args

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator

from .errors import IntentValidationError, UnsupportedOperationError


class _Parameters(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True, allow_inf_nan=False)


class SwapParameters(_Parameters):
    operation: Literal["swap"] = "swap"
    token_in: str = Field(alias="tokenIn", min_length=1)
    token_out: str = Field(alias="tokenOut", min_length=1)
    amount_in: float = Field(alias="amountIn", gt=0)
    amount_out_min: Optional[float] = Field(default=None, alias="amountOutMin", ge=0)
    slippage: Optional[float] = Field(default=None, ge=0, le=100)
    preferred_dex: Optional[str] = Field(default=None, alias="preferredDex")


class StakeParameters(_Parameters):
    operation: Literal["stake", "unstake", "claim_rewards"]
    amount: float = Field(default=0.0, ge=0)
    validator_id: Optional[str] = Field(default=None, alias="validatorId")
    position_id: Optional[str] = Field(default=None, alias="positionId")

    @model_validator(mode="after")
    def _check_operation_inputs(self) -> "StakeParameters":
        if self.operation == "stake" and self.amount <= 0:
            raise ValueError("Amount required for staking operation")
        if self.operation == "unstake" and not self.position_id:
            raise ValueError("Position ID required for unstaking")
        if self.operation == "claim_rewards" and not self.position_id:
            raise ValueError("Position ID required for claiming rewards")
        return self


class PortfolioParameters(_Parameters):
    operation: Literal["get_balances", "get_pnl", "get_positions", "get_history"]
    timeframe: Literal["24h", "7d", "30d", "1y", "all"] = "24h"
    include_staking: bool = Field(default=True, alias="includeStaking")
    include_transactions: bool = Field(default=False, alias="includeTransactions")


class ResearchParameters(_Parameters):
    operation: Literal["market_data", "news", "token_analysis", "protocol_analysis", "trend_analysis"]
    query: str = ""
    tokens: List[str] = Field(default_factory=list)
    protocols: List[str] = Field(default_factory=list)
    timeframe: Literal["24h", "7d", "30d"] = "24h"


class AnalyticsParameters(_Parameters):
    operation: Literal[
        "decode_transaction",
        "analyze_gas",
        "performance_report",
        "risk_assessment",
        "optimization_suggestions",
    ]
    transaction_hash: Optional[str] = Field(
        default=None,
        alias="transactionHash",
        validation_alias=AliasChoices("transactionHash", "txHash"),
    )
    user_address: Optional[str] = Field(default=None, alias="userAddress")
    timeframe: Literal["24h", "7d", "30d", "all"] = "7d"

    @model_validator(mode="after")
    def _check_transaction_hash(self) -> "AnalyticsParameters":
        if self.operation == "decode_transaction" and not self.transaction_hash:
            raise ValueError("Transaction hash required for decoding")
        return self


OperationParameters = Annotated[
    Union[
        SwapParameters,
        StakeParameters,
        PortfolioParameters,
        ResearchParameters,
        AnalyticsParameters,
    ],
    Field(discriminator="operation"),
]

_ADAPTER: TypeAdapter = TypeAdapter(OperationParameters)

_MODELS: tuple = (
    SwapParameters,
    StakeParameters,
    PortfolioParameters,
    ResearchParameters,
    AnalyticsParameters,
)

OPERATION_MODELS: Dict[str, Type[BaseModel]] = {
    operation: model
    for model in _MODELS
    for operation in get_args(model.model_fields["operation"].annotation)
}


def parse_operation_parameters(
    raw: Mapping[str, Any],
    default_operation: Optional[str] = None,
) -> BaseModel:
    data = dict(raw)
    if not data.get("operation") and default_operation is not None:
        data["operation"] = default_operation

    operation = data.get("operation")
    if not isinstance(operation, str) or operation not in OPERATION_MODELS:
        raise UnsupportedOperationError(f"Unsupported operation: {operation}")

    try:
        return _ADAPTER.validate_python(data)
    except ValidationError as exc:
        raise IntentValidationError(_format_errors(exc)) from exc


def _format_errors(exc: ValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"][1:])
        message = error["msg"].replace("Value error, ", "")
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages)
