from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, Field

from app.config import Settings
from app.models.news_public import BriefingInput, BriefingResult


class PaymentsConfig(BaseModel):
    """Passed through to the payment facilitator; the service never interprets it."""

    facilitator_url: str
    pay_to: str
    network: str
    default_price: str


class EntrypointDescriptor(BaseModel):
    key: str
    description: str
    price: str
    invoke_path: str
    input_schema: Dict[str, Any] = Field(default_factory=dict)
    output_schema: Dict[str, Any] = Field(default_factory=dict)


class AgentManifest(BaseModel):
    name: str
    version: str
    description: str
    payments: PaymentsConfig
    entrypoints: List[EntrypointDescriptor] = Field(default_factory=list)


def build_entrypoint_descriptor(settings: Settings) -> EntrypointDescriptor:
    return EntrypointDescriptor(
        key=settings.ENTRYPOINT_KEY,
        description=settings.ENTRYPOINT_DESCRIPTION,
        price=settings.ENTRYPOINT_PRICE,
        invoke_path=f"/entrypoints/{settings.ENTRYPOINT_KEY}/invoke",
        input_schema=BriefingInput.model_json_schema(),
        output_schema=BriefingResult.model_json_schema(by_alias=True),
    )


def build_manifest(settings: Settings) -> AgentManifest:
    return AgentManifest(
        name=settings.AGENT_NAME,
        version=settings.AGENT_VERSION,
        description=settings.AGENT_DESCRIPTION,
        payments=PaymentsConfig(
            facilitator_url=settings.FACILITATOR_URL,
            pay_to=settings.PAY_TO,
            network=settings.NETWORK,
            default_price=settings.DEFAULT_PRICE,
        ),
        entrypoints=[build_entrypoint_descriptor(settings)],
    )
