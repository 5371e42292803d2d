"""
GitHub sync pipeline services.

Module structure:
- poller.py: Picks due projects and enqueues branch refreshes
- ingestor.py: Reconciles one branch into commits + branch links
- enricher.py: Backfills diff stats in bounded, self-rescheduling batches
- broadcast.py: Publishes commit aggregates to real-time subscribers
- branches.py: Branch discovery
- user_resolver.py: Commit author -> registered user mapping
"""

from commitsync.services.sync.branches import BranchDiscovery
from commitsync.services.sync.broadcast import (
    Contributor,
    GithubBroadcaster,
    RegisteredContributor,
    UnregisteredContributor,
    github_broadcaster,
)
from commitsync.services.sync.enricher import (
    BatchResult,
    CommitStatsEnricher,
    EnrichmentOutcome,
    EnrichmentRun,
    RetryBudgetExhausted,
    StatsEnrichmentJob,
)
from commitsync.services.sync.ingestor import CommitIngestor, IngestionResult
from commitsync.services.sync.poller import GithubPoller, PollReport
from commitsync.services.sync.user_resolver import UserResolver

__all__ = [
    "BatchResult",
    "BranchDiscovery",
    "CommitIngestor",
    "CommitStatsEnricher",
    "Contributor",
    "EnrichmentOutcome",
    "EnrichmentRun",
    "GithubBroadcaster",
    "GithubPoller",
    "IngestionResult",
    "PollReport",
    "RegisteredContributor",
    "RetryBudgetExhausted",
    "StatsEnrichmentJob",
    "UnregisteredContributor",
    "UserResolver",
    "github_broadcaster",
]
