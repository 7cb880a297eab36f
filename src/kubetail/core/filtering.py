"""
Scope filtering by container, namespace and pod name.

All constraints are optional and conjunctive: a record is in scope only
when it satisfies every constraint that is set.
"""

import re
from dataclasses import dataclass
from typing import Optional

from ..models.log_record import LogRecord
from .exceptions import ConfigurationError


@dataclass(frozen=True)
class SelectionCriteria:
    """Process-wide selection criteria, built once at startup."""
    container_name: str = ""
    namespace_name: str = ""
    pod_pattern: Optional["re.Pattern[str]"] = None

    @classmethod
    def build(
        cls,
        container_name: str = "",
        namespace_name: str = "",
        pod_pattern: str = "",
    ) -> "SelectionCriteria":
        """
        Build criteria from raw configuration values.

        Raises:
            ConfigurationError: If the pod pattern is not a valid regular expression
        """
        compiled: Optional["re.Pattern[str]"] = None
        if pod_pattern:
            try:
                compiled = re.compile(pod_pattern)
            except re.error as e:
                raise ConfigurationError(
                    f"Invalid pod name pattern '{pod_pattern}': {e}",
                    details={"pod_pattern": pod_pattern},
                ) from e

        return cls(
            container_name=container_name,
            namespace_name=namespace_name,
            pod_pattern=compiled,
        )

    @property
    def is_empty(self) -> bool:
        """True when no constraint is set."""
        return not (self.container_name or self.namespace_name or self.pod_pattern)


def exclusion_reason(record: LogRecord, criteria: SelectionCriteria) -> Optional[str]:
    """
    Return the constraint that excludes a record, or None if it is in scope.

    Returns:
        "container", "namespace", "pod" or None
    """
    if criteria.container_name and record.container_name != criteria.container_name:
        return "container"

    if criteria.namespace_name and record.namespace_name != criteria.namespace_name:
        return "namespace"

    if criteria.pod_pattern is not None and criteria.pod_pattern.search(record.pod_name) is None:
        return "pod"

    return None


def in_scope(record: LogRecord, criteria: SelectionCriteria) -> bool:
    """Check whether a record matches every active constraint."""
    return exclusion_reason(record, criteria) is None
