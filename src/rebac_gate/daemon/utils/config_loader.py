import yaml
import os
import re
from pathlib import Path
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, SecretStr, field_validator, model_validator
from typing import Any, Dict, List, Optional

from ..policy.fields import FieldKind, FieldSpec, parse_field_spec
from .logging_config import StructuredLogger

logger = StructuredLogger(__name__)

DEFAULT_AUTHORIZER_URL = "https://authorizer.prod.aserto.com/api/v2/authz/is"
API_KEY_ENV = "REBAC_GATE_AUTHORIZER_API_KEY"
HTTP_METHODS = ("GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")

_SPEC_FIELDS = ("object_type", "object_id", "relation")
_KEY_HASH_RE = re.compile(r"^[0-9a-f]{64}$")
_PARAM_RE = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


def _coerce_spec(value: Any) -> Optional[FieldSpec]:
    if value is None or isinstance(value, FieldSpec):
        return value
    return parse_field_spec(value)


# --- V1 Schema Models ---

class AuthorizerConfig(BaseModel):
    url: str = DEFAULT_AUTHORIZER_URL
    timeout_seconds: float = Field(10.0, gt=0)


class PolicyConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    tenant_id: str = Field(..., min_length=1)
    authorizer_api_key: SecretStr
    policy_name: str = Field(..., min_length=1)
    service_name: Optional[str] = None
    object_type: Optional[FieldSpec] = None
    object_id: Optional[FieldSpec] = None
    relation: Optional[FieldSpec] = None

    @model_validator(mode="before")
    @classmethod
    def api_key_from_env(cls, data):
        if isinstance(data, dict) and not data.get("authorizer_api_key"):
            env_key = os.getenv(API_KEY_ENV, "")
            if env_key:
                data = {**data, "authorizer_api_key": env_key}
        return data

    @field_validator(*_SPEC_FIELDS, mode="before")
    @classmethod
    def parse_spec(cls, v):
        return _coerce_spec(v)

    @field_validator("authorizer_api_key")
    @classmethod
    def api_key_not_empty(cls, v: SecretStr):
        if not v.get_secret_value():
            raise ValueError(f"authorizer_api_key is empty (set it in config or {API_KEY_ENV})")
        return v

    @model_validator(mode="after")
    def require_service_name(self):
        # Only a literal object_id can never fall back to the endpoint identity
        has_fixed_id = self.object_id is not None and self.object_id.kind is FieldKind.LITERAL
        if not has_fixed_id and not self.service_name:
            raise ValueError("service_name is required unless object_id is a literal")
        return self

    def with_overrides(self, overrides: Dict[str, FieldSpec]) -> "PolicyConfig":
        if not overrides:
            return self
        # Attribute copy keeps FieldSpec and SecretStr values intact
        merged = {name: getattr(self, name) for name in type(self).model_fields}
        merged.update(overrides)
        return PolicyConfig(**merged)


class ConsumerConfig(BaseModel):
    name: str = Field(..., min_length=1)
    sub: str = Field(..., min_length=1)
    key_hash: str
    claims: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("key_hash")
    @classmethod
    def validate_key_hash(cls, v: str):
        v = v.strip().lower()
        if not _KEY_HASH_RE.match(v):
            raise ValueError("key_hash must be a hex SHA-256 digest")
        return v


class RouteConfig(BaseModel):
    path: str
    methods: List[str] = Field(default_factory=lambda: list(HTTP_METHODS))
    upstream: str
    object_type: Optional[FieldSpec] = None
    object_id: Optional[FieldSpec] = None
    relation: Optional[FieldSpec] = None

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str):
        if not v.startswith("/"):
            raise ValueError(f"Route path '{v}' must start with '/'")
        names = _PARAM_RE.findall(v)
        if len(names) != len(set(names)):
            raise ValueError(f"Route path '{v}' repeats a parameter name")
        return v

    @field_validator("methods")
    @classmethod
    def validate_methods(cls, v: List[str]):
        methods = [m.upper() for m in v]
        unknown = [m for m in methods if m not in HTTP_METHODS]
        if unknown:
            raise ValueError(f"Unsupported HTTP methods: {unknown}")
        if not methods:
            raise ValueError("At least one method is required")
        return methods

    @field_validator(*_SPEC_FIELDS, mode="before")
    @classmethod
    def parse_spec(cls, v):
        return _coerce_spec(v)

    def overrides(self) -> Dict[str, FieldSpec]:
        return {name: getattr(self, name) for name in _SPEC_FIELDS if getattr(self, name) is not None}


class GatewayConfig(BaseModel):
    version: int = Field(1, ge=1, le=1)
    authorizer: AuthorizerConfig = Field(default_factory=AuthorizerConfig)
    policy: PolicyConfig
    consumers: List[ConsumerConfig] = Field(default_factory=list)
    routes: List[RouteConfig] = Field(default_factory=list)

    _route_policies: List[PolicyConfig] = PrivateAttr(default_factory=list)

    @model_validator(mode="after")
    def validate_routes(self):
        seen = set()
        for route in self.routes:
            for method in route.methods:
                key = (method, route.path)
                if key in seen:
                    raise ValueError(f"Duplicate route {method} {route.path}")
                seen.add(key)
        return self

    def model_post_init(self, __context: Any) -> None:
        self._route_policies = [self.policy.with_overrides(r.overrides()) for r in self.routes]

    def policy_for(self, index: int) -> PolicyConfig:
        return self._route_policies[index]


# --- Config Loader (Atomic Reload) ---

class ConfigLoader:
    def __init__(self):
        self.config_dir = Path(os.getenv("REBAC_GATE_CONFIG_DIR", "/etc/rebac-gate/config"))
        self.config_file = self.config_dir / "gateway.yaml"
        self.config: Optional[GatewayConfig] = None

    def load_config(self) -> GatewayConfig:
        """
        Loads and validates configuration from gateway.yaml.
        ATOMIC: On failure, previous config is preserved.
        Raises ValueError if invalid and no previous config exists.
        """
        if not self.config_file.exists():
            logger.critical("Config file not found", path=str(self.config_file))
            raise FileNotFoundError(f"Config file not found at {self.config_file}")

        try:
            new_config = load_config_file(self.config_file)

            # Validation passed, atomic swap
            self.config = new_config

            logger.info("Configuration loaded successfully",
                        version=self.config.version,
                        routes=len(self.config.routes),
                        consumers=len(self.config.consumers))
            return self.config

        except Exception as e:
            logger.error("Configuration validation failed", error=str(e))
            if self.config is not None:
                logger.warning("Keeping previous valid configuration")
                raise ValueError(f"Invalid configuration (previous config retained): {e}")
            else:
                logger.critical("No previous configuration to fall back to")
                raise ValueError(f"Invalid configuration (no fallback): {e}")

    def get_config(self) -> GatewayConfig:
        if not self.config:
            self.load_config()
        return self.config


def load_config_file(path: Path) -> GatewayConfig:
    with open(path, "r") as f:
        raw_data = yaml.safe_load(f)
    if not isinstance(raw_data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")

    logger.info("Loading configuration", path=str(path))
    return GatewayConfig(**raw_data)


config_loader = ConfigLoader()
