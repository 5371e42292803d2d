"""
GitHub service package.

Usage: `from commitsync.services.github import GitHubRepositoryClient, RateLimitTracker`

Module structure:
- client.py: Repository client (branches, commits, single commit, rate limit)
- rate_limit.py: Per-token quota tracker
- helpers.py: Header parsing, error handling, repo path extraction
- http_client.py: Shared httpx client
- types.py: Normalized commit and quota types
- exceptions.py: Custom exceptions
"""

from commitsync.services.github.client import GitHubRepositoryClient
from commitsync.services.github.exceptions import GitHubAPIError, RepositoryUnavailable
from commitsync.services.github.helpers import RateLimitInfo, extract_repo_path
from commitsync.services.github.http_client import close_github_client
from commitsync.services.github.rate_limit import RateLimitTracker, clear_rate_limit_cache
from commitsync.services.github.types import (
    ChangedFile,
    FullCommit,
    RateLimitSnapshot,
    ShallowCommit,
)

__all__ = [
    # Client
    "GitHubRepositoryClient",
    "close_github_client",
    # Rate limiting
    "RateLimitTracker",
    "RateLimitInfo",
    "clear_rate_limit_cache",
    # Utilities
    "extract_repo_path",
    # Exceptions
    "GitHubAPIError",
    "RepositoryUnavailable",
    # Types
    "ChangedFile",
    "FullCommit",
    "RateLimitSnapshot",
    "ShallowCommit",
]
