"""
Pricing service for the Trade-In Pricing Layer.
"""

from typing import Dict, List, Optional

from fastapi import Depends, Query

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import ValidationError

from .adapters.registry_client import RegistryClient
from .cache.redis_cache import ActiveRuleCache
from .catalog.models import (
    DeviceType, DeviceTypeUpsertRequest, DeviceTypeResponse,
    RuleCreateRequest, RuleCreatedResponse, RuleResponse,
    RuleActivationResponse, RuleListResponse
)
from .catalog.rules import RuleCatalog
from .catalog.store import CatalogStore, InMemoryCatalogStore
from .persistence.postgres import PostgresCatalogStore
from .pricing import PricingEngine
from .rules.models import PriceRequest, PriceResponse


def type_reference(
    type_alias: Optional[str] = Query(None, alias="typeAlias", description="Device type id, code or name"),
    type_alias_snake: Optional[str] = Query(None, alias="type_alias"),
    type_id: Optional[str] = Query(None, alias="typeId"),
    type_id_snake: Optional[str] = Query(None, alias="type_id"),
) -> Optional[str]:
    """Type reference from whichever query spelling the caller used."""
    return type_alias or type_alias_snake or type_id or type_id_snake


class PricingService(BaseService):
    """Pricing service: rule catalog plus price computation."""

    def __init__(self, config: Optional[ServiceConfig] = None,
                 store: Optional[CatalogStore] = None,
                 registry_client: Optional[RegistryClient] = None,
                 cache: Optional[ActiveRuleCache] = None):
        super().__init__("pricing", 8021, config or get_config("pricing", 8021))

        self.store = store or self._build_store()
        self.catalog = RuleCatalog(self.store)

        self.registry_client = registry_client
        if self.registry_client is None and self.config.registry_url:
            self.registry_client = RegistryClient(
                self.config.registry_url,
                timeout=self.config.registry_timeout_seconds
            )

        self.cache = cache
        if self.cache is None and self.config.enable_rule_cache:
            self.cache = ActiveRuleCache(self.config.redis_url, self.config.rule_cache_ttl_seconds)

        self.engine = PricingEngine(
            rule_source=self.registry_client or self.catalog,
            source_name="registry" if self.registry_client else "catalog",
            cache=self.cache,
            metrics=self.metrics,
            default_kind=self.config.default_rule_kind
        )

        self._setup_pricing_routes()

    def _build_store(self) -> CatalogStore:
        if self.config.store_backend == "postgres":
            return PostgresCatalogStore(
                self.config.postgres_dsn,
                min_size=self.config.postgres_min_pool,
                max_size=self.config.postgres_max_pool
            )
        return InMemoryCatalogStore()

    def _setup_pricing_routes(self):
        """Set up catalog and pricing routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "pricing",
                "message": "Trade-In Pricing Layer - Pricing Service",
                "version": "1.0.0",
                "capabilities": ["rule_catalog", "pricing"] + (["caching"] if self.cache else []),
                "rule_source": self.engine.source_name
            }

        @self.app.get("/types", response_model=List[DeviceTypeResponse])
        async def list_types():
            """List device types sorted by name."""
            types = await self.store.list_device_types()
            return [DeviceTypeResponse(**vars(t)) for t in types]

        @self.app.post("/types")
        async def upsert_type(request: DeviceTypeUpsertRequest):
            """Register a device type; existing ids are left untouched."""
            await self.store.upsert_device_type(DeviceType(
                id=request.id,
                name=request.name,
                code=request.code,
                status=request.status
            ))
            return {"ok": True}

        @self.app.get("/rules", response_model=RuleListResponse)
        async def list_rules(
            type_alias: Optional[str] = Depends(type_reference),
            kind: Optional[str] = Query(None, description="Rule kind")
        ):
            """List rule records, newest first."""
            records = await self.catalog.list(type_alias, kind)
            return RuleListResponse(
                rules=[RuleResponse.from_record(r) for r in records],
                total=len(records)
            )

        @self.app.post("/rules", response_model=RuleCreatedResponse)
        async def create_rule(request: RuleCreateRequest):
            """Create a rule version."""
            record = await self.catalog.create(
                type_alias=request.type_alias,
                kind=request.kind,
                body=request.body,
                version=request.version,
                is_active=request.is_active
            )
            if record.is_active:
                self.metrics.increment_counter("rule_activations_total", trigger="create")
            await self.engine.invalidate(record.kind)

            self.observability.log_business_event(
                "rule_created",
                rule_id=record.id,
                type_alias=record.type_alias,
                kind=record.kind,
                version=record.version
            )
            return RuleCreatedResponse(id=record.id, version=record.version)

        # Declared before /rules/{rule_id} so "active" is not taken as an id
        @self.app.get("/rules/active", response_model=RuleResponse)
        async def get_active_rule(
            type_alias: Optional[str] = Depends(type_reference),
            kind: Optional[str] = Query(None, description="Rule kind")
        ):
            """Active rule for (type, kind), else the newest one."""
            if not type_alias:
                raise ValidationError("typeAlias required")
            record = await self.catalog.get_active(type_alias, kind or self.config.default_rule_kind)
            return RuleResponse.from_record(record)

        @self.app.get("/rules/{rule_id}", response_model=RuleResponse)
        async def get_rule(rule_id: str):
            """Get a rule record by id."""
            return RuleResponse.from_record(await self.catalog.get(rule_id))

        @self.app.put("/rules/{rule_id}/activate", response_model=RuleActivationResponse)
        async def activate_rule(rule_id: str):
            """Make a rule the active one for its (type, kind)."""
            record = await self.catalog.activate(rule_id)
            self.metrics.increment_counter("rule_activations_total", trigger="api")
            await self.engine.invalidate(record.kind)

            self.observability.log_business_event(
                "rule_activated",
                rule_id=record.id,
                type_alias=record.type_alias,
                kind=record.kind
            )
            return RuleActivationResponse(
                id=record.id,
                type_alias=record.type_alias,
                kind=record.kind,
                is_active=record.is_active
            )

        @self.app.post("/price", response_model=PriceResponse)
        async def compute_price(request: PriceRequest):
            """Compute a preliminary price for questionnaire answers."""
            self.observability.trace_request(quote_ref=request.quote_ref)
            result = await self.engine.compute_price(request.answers, request.rule_lookup_reference)
            return PriceResponse(**result.to_dict())

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check pricing service dependencies."""
        dependencies = {}

        store_name = "postgres" if isinstance(self.store, PostgresCatalogStore) else "store"
        try:
            dependencies[store_name] = "ok" if await self.store.health_check() else "error"
        except Exception:
            dependencies[store_name] = "error"

        if self.cache is not None:
            try:
                dependencies["redis"] = "ok" if await self.cache.health_check() else "error"
            except Exception:
                dependencies["redis"] = "error"

        if self.registry_client is not None:
            dependencies["registry"] = "ok" if await self.registry_client.health_check() else "error"

        return dependencies

    async def start(self):
        """Start pricing service components."""
        await self.store.start()
        if self.cache is not None:
            await self.cache.start()

        self.logger.info(
            "Pricing service started",
            store_backend=self.config.store_backend,
            rule_source=self.engine.source_name,
            rule_cache=self.cache is not None
        )

    async def stop(self):
        """Stop pricing service components."""
        await self.store.stop()
        if self.cache is not None:
            await self.cache.stop()

        self.logger.info("Pricing service stopped")


def create_app():
    """Create pricing service application."""
    service = PricingService()
    return service.app


if __name__ == "__main__":
    service = PricingService()
    service.run()
