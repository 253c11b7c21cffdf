"""Wire models for the authorizer's ``/api/v2/authz/is`` call."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

DECISION_NAME = "allowed"
POLICY_PATH = "rebac.check"


class IdentityContext(BaseModel):
    type: str = "IDENTITY_TYPE_SUB"
    identity: str


class ResourceTriple(BaseModel):
    model_config = ConfigDict(frozen=True)

    object_type: str = Field(..., min_length=1)
    object_id: str = Field(..., min_length=1)
    relation: str = Field(..., min_length=1)


class PolicyContext(BaseModel):
    decisions: list[str] = Field(default_factory=lambda: [DECISION_NAME])
    path: str = POLICY_PATH


class PolicyInstance(BaseModel):
    name: str
    instance_label: str


class DecisionRequest(BaseModel):
    identity_context: IdentityContext
    resource_context: ResourceTriple
    policy_context: PolicyContext = Field(default_factory=PolicyContext)
    policy_instance: PolicyInstance


class Decision(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    decision: str | None = Field(None, validation_alias=AliasChoices("decision", "id"))
    is_: bool | None = Field(None, alias="is")


class DecisionResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    decisions: list[Decision] = Field(default_factory=list)

    @field_validator("decisions", mode="before")
    @classmethod
    def null_decisions_as_empty(cls, v):
        return [] if v is None else v

    @property
    def allowed(self) -> bool:
        return bool(self.decisions) and self.decisions[0].is_ is True
