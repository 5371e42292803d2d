"""Exceptions for GitHub service."""


class GitHubAPIError(Exception):
    """Error from GitHub API."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        rate_limit_reset: int | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.rate_limit_reset = rate_limit_reset  # Unix timestamp when rate limit resets
        super().__init__(message)

    @property
    def is_rate_limited(self) -> bool:
        return self.rate_limit_reset is not None and self.status_code in (403, 429)

    @property
    def is_gone(self) -> bool:
        """The requested object is not served (anymore), e.g. a commit lost to a force-push."""
        return self.status_code in (404, 422)


class RepositoryUnavailable(GitHubAPIError):
    """The repository could not be read (transport, auth, not-found or quota error).

    Callers treat this as "zero commits available" rather than a hard failure,
    except inside a scheduled enrichment batch, where it ends that batch.
    """
