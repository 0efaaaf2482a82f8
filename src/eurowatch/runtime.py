"""Application level helpers for assembling pipeline dependencies."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .classification import GeminiTopicClassifier
from .clients import EuroparlClient, MEPDirectoryClient
from .config import AppConfig
from .core.errors import ConfigurationError
from .database import Storage, create_storage
from .linking import MEPLinker
from .pipeline import IngestPipeline, MEPSync, TopicReclassifier


@dataclass(slots=True)
class PipelineResources:
    """Container bundling the objects needed to run the pipeline."""

    pipeline: IngestPipeline
    fetcher: EuroparlClient
    storage: Storage
    classifier: GeminiTopicClassifier
    owns_fetcher: bool = True
    owns_storage: bool = True

    def close(self) -> None:
        if self.owns_fetcher:
            self.fetcher.close()
        if self.owns_storage:
            self.storage.dispose()


def open_storage(config: AppConfig) -> Storage:
    return create_storage(
        config.storage.database_url,
        echo=config.storage.echo_sql,
        busy_timeout=config.storage.busy_timeout,
        busy_retries=config.storage.busy_retries,
    )


def create_classifier(config: AppConfig, *, concurrency: Optional[int] = None) -> GeminiTopicClassifier:
    """Build the Gemini classifier; raises :class:`ConfigurationError` without an API key."""

    if not config.gemini.api_key:
        raise ConfigurationError(
            "Gemini API key missing - set EUROWATCH_GEMINI_API_KEY or gemini.api_key in the config file"
        )
    return GeminiTopicClassifier(
        api_key=config.gemini.api_key,
        base_url=config.gemini.base_url,
        model=config.gemini.model,
        timeout=config.gemini.timeout,
        max_retries=config.gemini.max_retries,
        max_output_tokens=config.gemini.max_output_tokens,
        concurrency=concurrency or config.gemini.concurrency,
        requests_per_minute=config.gemini.requests_per_minute,
        input_cost_per_million=config.gemini.input_cost_per_million,
        output_cost_per_million=config.gemini.output_cost_per_million,
    )


def create_fetcher(config: AppConfig) -> EuroparlClient:
    return EuroparlClient(
        config.europarl.base_url,
        user_agent=config.europarl.user_agent,
        timeout=config.europarl.timeout,
        max_retries=config.europarl.max_retries,
        backoff_cap=config.europarl.backoff_cap,
        min_document_bytes=config.europarl.min_document_bytes,
        discovery_max_days=config.europarl.discovery_max_days,
    )


def create_pipeline(
    config: AppConfig,
    *,
    storage: Storage | None = None,
    fetcher: EuroparlClient | None = None,
    classifier: GeminiTopicClassifier | None = None,
) -> PipelineResources:
    owns_fetcher = fetcher is None
    owns_storage = storage is None
    classifier_instance = classifier or create_classifier(config)
    fetcher_instance = fetcher or create_fetcher(config)
    storage_instance = storage or open_storage(config)
    pipeline = IngestPipeline(
        fetcher=fetcher_instance,
        storage=storage_instance,
        classifier=classifier_instance,
        linker=MEPLinker(surname_fallback=config.linker.surname_fallback),
    )
    return PipelineResources(
        pipeline=pipeline,
        fetcher=fetcher_instance,
        storage=storage_instance,
        classifier=classifier_instance,
        owns_fetcher=owns_fetcher,
        owns_storage=owns_storage,
    )


def create_reclassifier(
    config: AppConfig,
    storage: Storage,
    *,
    concurrency: Optional[int] = None,
    classifier: GeminiTopicClassifier | None = None,
) -> TopicReclassifier:
    return TopicReclassifier(
        storage=storage,
        classifier=classifier or create_classifier(config, concurrency=concurrency),
    )


def create_mep_sync(config: AppConfig, storage: Storage, *, client: MEPDirectoryClient | None = None) -> MEPSync:
    directory = client or MEPDirectoryClient(
        config.europarl.open_data_url,
        user_agent=config.europarl.user_agent,
        timeout=config.europarl.timeout,
        max_retries=config.europarl.max_retries,
        backoff_cap=config.europarl.backoff_cap,
    )
    return MEPSync(client=directory, storage=storage)


__all__ = [
    "PipelineResources",
    "create_classifier",
    "create_fetcher",
    "create_mep_sync",
    "create_pipeline",
    "create_reclassifier",
    "open_storage",
]
