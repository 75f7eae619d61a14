"""Service layer modules."""

from app.services.filter_evaluator import FilterEvaluator
from app.services.lookup_query_builder import LookupQueryBuilder, LookupSelect
from app.services.meta_service import CachedMetaStore, InMemoryMetaStore, MetaStore
from app.services.relation_resolver import RelationResolver, ResolvedRelation
from app.services.webhook_dispatch_service import WebhookDispatcher

# Import service modules (not individual functions) for cleaner access
from app.services import hook_log_service
from app.services import webhook_template_service

__all__ = [
    # Metadata
    "MetaStore",
    "InMemoryMetaStore",
    "CachedMetaStore",
    "RelationResolver",
    "ResolvedRelation",
    # Query building
    "LookupQueryBuilder",
    "LookupSelect",
    # Webhooks
    "FilterEvaluator",
    "WebhookDispatcher",
    # Service modules
    "hook_log_service",
    "webhook_template_service",
]
