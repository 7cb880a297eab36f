"""
Log record data model.

A LogRecord is the decoded, read-only view of one Cloud Logging entry
delivered over Pub/Sub. Absent and empty fields are both represented
by the empty string.
"""

from pydantic import BaseModel, ConfigDict, Field


class LogRecord(BaseModel):
    """
    Decoded log entry.

    Lives for a single delivery cycle and is never stored.
    """

    timestamp: str = Field(
        default="",
        description="Entry timestamp, passed through unparsed"
    )
    text_payload: str = Field(
        default="",
        description="Plain-text body (textPayload)"
    )
    structured_payload: str = Field(
        default="",
        description="Serialized structured body (jsonPayload)"
    )

    # Workload labels
    pod_name: str = Field(default="", description="Pod that emitted the entry")
    namespace_name: str = Field(default="", description="Namespace of the pod")

    # Resource labels
    container_name: str = Field(default="", description="Container that emitted the entry")
    project_id: str = Field(default="", description="GCP project id")
    zone: str = Field(default="", description="Cluster zone or location")

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
