"""
GitHub API client for PR velocity analysis.

This module provides a client for the GitHub GraphQL API that fetches
merged and open pull requests, with their reviews, pending review requests
and changed files, and converts them into PRRecord instances.
"""

import os
import logging
import requests
import time
from datetime import datetime
from typing import Dict, List, Optional, Any

from pr_record import PRRecord, PRRecordError


class GitHubAPIError(Exception):
    """Custom exception for GitHub API related errors."""
    pass


class GitHubRateLimitError(GitHubAPIError):
    """Exception raised when GitHub API rate limit is exceeded."""
    pass


class GitHubAuthenticationError(GitHubAPIError):
    """Exception raised when GitHub API authentication fails."""
    pass


PULL_REQUEST_QUERY = """
query($owner: String!, $name: String!, $first: Int!, $after: String,
      $states: [PullRequestState!], $orderField: IssueOrderField!) {
  repository(owner: $owner, name: $name) {
    pullRequests(first: $first, after: $after, states: $states,
                 orderBy: {field: $orderField, direction: DESC}) {
      nodes {
        number
        title
        createdAt
        updatedAt
        mergedAt
        additions
        deletions
        author { login }
        reviews(first: 10) {
          nodes {
            createdAt
            author { login }
          }
        }
        reviewRequests(first: 10) {
          nodes {
            requestedReviewer {
              ... on User { login }
            }
          }
        }
        files(first: 5) {
          nodes { path }
        }
      }
      pageInfo {
        hasNextPage
        endCursor
      }
    }
  }
}
"""

PR_STATES = ('MERGED', 'OPEN')
PAGE_SIZE = 100


class GitHubClient:
    """
    Client for the GitHub GraphQL API.

    This client handles authentication, rate limiting, request timeouts,
    retries and pagination. Callers receive finished PRRecord lists.
    """

    BASE_URL = "https://api.github.com"
    GRAPHQL_URL = f"{BASE_URL}/graphql"

    def __init__(self, token: str, timeout: float = 30.0, delay: float = 0.2):
        """
        Initialize GitHub client with authentication token.

        Args:
            token: GitHub personal access token for API authentication
            timeout: Timeout in seconds for each API request
            delay: Delay in seconds between paginated requests

        Raises:
            GitHubAuthenticationError: If token is empty or None
        """
        if not token:
            raise GitHubAuthenticationError("GitHub token is required")

        self.token = token
        self.timeout = timeout
        self.delay = delay
        self.session = requests.Session()
        self.session.headers.update({
            'Authorization': f'bearer {token}',
            'Accept': 'application/vnd.github.v4+json',
            'User-Agent': 'PR-Velocity-Analyzer/1.0'
        })

        self.logger = logging.getLogger(__name__)

    @classmethod
    def get_token_from_env(cls) -> str:
        """
        Read GitHub token from GITHUB_TOKEN environment variable.

        Returns:
            GitHub token from environment variable

        Raises:
            GitHubAuthenticationError: If GITHUB_TOKEN is not set
        """
        token = os.environ.get('GITHUB_TOKEN')
        if not token:
            raise GitHubAuthenticationError(
                "GITHUB_TOKEN environment variable is not set"
            )
        return token

    def validate_token(self) -> bool:
        """
        Test API connectivity and token validity.

        Returns:
            True if token is valid and API is accessible

        Raises:
            GitHubAuthenticationError: If authentication fails
            GitHubAPIError: If API request fails for other reasons
        """
        try:
            response = self.session.get(f"{self.BASE_URL}/user", timeout=self.timeout)

            if response.status_code == 401:
                raise GitHubAuthenticationError("Invalid GitHub token")
            elif response.status_code == 403:
                raise GitHubRateLimitError("GitHub API rate limit exceeded")
            elif response.status_code != 200:
                raise GitHubAPIError(f"API request failed: {response.status_code}")

            self.logger.info("GitHub token validation successful")
            return True

        except requests.RequestException as e:
            raise GitHubAPIError(f"Failed to connect to GitHub API: {e}")

    def get_rate_limit_status(self) -> Dict[str, Any]:
        """
        Get current GraphQL rate limit status from GitHub API.

        Returns:
            Dictionary containing rate limit information
        """
        url = f"{self.BASE_URL}/rate_limit"

        try:
            response = self.session.get(url, timeout=self.timeout)

            if response.status_code == 401:
                raise GitHubAuthenticationError("GitHub token is invalid or expired")
            elif response.status_code != 200:
                raise GitHubAPIError(f"Failed to get rate limit status: {response.status_code}")

            graphql_info = response.json().get('resources', {}).get('graphql', {})

            return {
                'limit': graphql_info.get('limit', 0),
                'remaining': graphql_info.get('remaining', 0),
                'reset': graphql_info.get('reset', 0),
                'used': graphql_info.get('used', 0),
                'reset_time': datetime.fromtimestamp(graphql_info['reset']).strftime('%Y-%m-%d %H:%M:%S') if graphql_info.get('reset') else 'Unknown'
            }

        except requests.RequestException as e:
            raise GitHubAPIError(f"Failed to check rate limit status: {e}")

    def _get_rate_limit_info(self, response: requests.Response) -> Dict[str, Any]:
        """Extract rate limit information from response headers."""
        return {
            'remaining': int(response.headers.get('X-RateLimit-Remaining', 0)),
            'limit': int(response.headers.get('X-RateLimit-Limit', 5000)),
            'reset': int(response.headers.get('X-RateLimit-Reset', 0)),
            'used': int(response.headers.get('X-RateLimit-Used', 0))
        }

    def _handle_rate_limit(self, response: requests.Response) -> None:
        """
        Raise on an exhausted rate limit and warn when it runs low.

        Args:
            response: HTTP response from GitHub API

        Raises:
            GitHubRateLimitError: If rate limit is exceeded
        """
        # Without rate limit headers a 403 is a plain Forbidden
        if 'X-RateLimit-Remaining' not in response.headers:
            return

        rate_info = self._get_rate_limit_info(response)
        self.logger.debug(f"API rate limit: {rate_info['remaining']}/{rate_info['limit']} remaining")

        if response.status_code in (403, 429) and rate_info['remaining'] == 0:
            wait_time = max(0, rate_info['reset'] - int(time.time()))
            reset_time_str = datetime.fromtimestamp(rate_info['reset']).strftime('%Y-%m-%d %H:%M:%S')
            raise GitHubRateLimitError(
                f"GitHub API rate limit exceeded ({rate_info['used']}/{rate_info['limit']} used). "
                f"Rate limit resets at {reset_time_str} (wait {wait_time} seconds)"
            )

        if rate_info['remaining'] < 100:
            reset_time_str = datetime.fromtimestamp(rate_info['reset']).strftime('%H:%M:%S')
            self.logger.warning(
                f"GitHub API rate limit running low: {rate_info['remaining']}/{rate_info['limit']} "
                f"remaining (resets at {reset_time_str})"
            )

    def _make_graphql_request(self, query: str, variables: Optional[Dict[str, Any]] = None,
                              max_retries: int = 3, base_delay: float = 1.0) -> Dict[str, Any]:
        """
        Run a GraphQL query with retry logic and exponential backoff.

        Args:
            query: GraphQL query document
            variables: Query variables
            max_retries: Maximum number of retry attempts
            base_delay: Base delay in seconds for exponential backoff

        Returns:
            The 'data' member of the GraphQL response

        Raises:
            GitHubAPIError: If the request fails after all retries or the
                            response carries GraphQL errors
            GitHubRateLimitError: If rate limit is exceeded
            GitHubAuthenticationError: If the token is rejected
        """
        payload = {'query': query, 'variables': variables or {}}
        last_exception = None

        for attempt in range(max_retries + 1):
            try:
                response = self.session.post(self.GRAPHQL_URL, json=payload, timeout=self.timeout)

                self._handle_rate_limit(response)

                if response.status_code == 401:
                    raise GitHubAuthenticationError("GitHub token is invalid or expired")
                elif response.status_code != 200:
                    raise GitHubAPIError(f"API request failed: {response.status_code} - {response.text}")

                body = response.json()
                errors = body.get('errors')
                if errors:
                    messages = '; '.join(str(error.get('message', error)) for error in errors)
                    if any(error.get('type') == 'RATE_LIMITED' for error in errors):
                        raise GitHubRateLimitError(f"GitHub API rate limit exceeded: {messages}")
                    raise GitHubAPIError(f"GraphQL query failed: {messages}")

                if attempt > 0:
                    self.logger.info(f"API request succeeded after {attempt} retries")

                return body.get('data') or {}

            except GitHubRateLimitError:
                raise
            except GitHubAuthenticationError:
                raise

            except requests.Timeout as e:
                last_exception = GitHubAPIError(f"request timed out after {self.timeout}s: {e}")
            except (requests.RequestException, ValueError, GitHubAPIError) as e:
                last_exception = e

            if attempt < max_retries:
                delay = base_delay * (2 ** attempt)
                self.logger.warning(
                    f"GraphQL request failed (attempt {attempt + 1}/{max_retries + 1}): {last_exception}. "
                    f"Retrying in {delay:.1f}s..."
                )
                time.sleep(delay)
            else:
                self.logger.error(f"GraphQL request failed after {max_retries + 1} attempts: {last_exception}")

        raise GitHubAPIError(f"GitHub GraphQL request failed after {max_retries + 1} attempts: {last_exception}")

    def fetch_pull_requests(self, owner: str, repo: str, state: str, limit: int = 100) -> List[PRRecord]:
        """
        Fetch pull requests in a given state as PRRecord instances.

        Merged PRs are ordered by creation date and open PRs by last update,
        newest first.

        Args:
            owner: Repository owner (user or organization)
            repo: Repository name
            state: 'MERGED' or 'OPEN'
            limit: Maximum number of PRs to fetch

        Returns:
            List of PR records, at most limit long

        Raises:
            GitHubAPIError: If API request fails or arguments are invalid
        """
        state = state.upper()
        if state not in PR_STATES:
            raise GitHubAPIError(f"Unsupported PR state: {state}")
        if limit < 1:
            raise GitHubAPIError("limit must be at least 1")

        order_field = 'UPDATED_AT' if state == 'OPEN' else 'CREATED_AT'
        records = []
        cursor = None

        self.logger.info(f"Fetching {state.lower()} pull requests from {owner}/{repo} (limit {limit})")

        while len(records) < limit:
            if records and self.delay > 0:
                time.sleep(self.delay)

            variables = {
                'owner': owner,
                'name': repo,
                'first': min(PAGE_SIZE, limit - len(records)),
                'after': cursor,
                'states': [state],
                'orderField': order_field,
            }

            data = self._make_graphql_request(PULL_REQUEST_QUERY, variables)
            repository = data.get('repository')
            if repository is None:
                raise GitHubAPIError(f"Repository {owner}/{repo} not found or not accessible")

            pull_requests = repository.get('pullRequests') or {}
            nodes = pull_requests.get('nodes') or []
            if not nodes:
                break

            for node in nodes:
                try:
                    records.append(PRRecord.from_graphql_node(node))
                except PRRecordError as e:
                    self.logger.warning(f"Skipping malformed PR node: {e}")

            page_info = pull_requests.get('pageInfo') or {}
            if not page_info.get('hasNextPage'):
                break
            cursor = page_info.get('endCursor')

        self.logger.info(f"Fetched {len(records)} {state.lower()} pull requests from {owner}/{repo}")
        return records[:limit]


def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging for the GitHub client.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
