"""Azure DevOps service-hook payloads.

Entry points: PullRequestEventResource, PushEventResource
"""

from provider.azuredevops.types import (
    ZERO_TIME,
    PullRequestEventResource,
    PushEventResource,
    parse_azure_time,
)

__all__ = ["ZERO_TIME", "PullRequestEventResource", "PushEventResource", "parse_azure_time"]
