import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class Settings(BaseModel):
    # Endpoint and credentials
    graph_base_url: str = Field(
        default="https://graph.microsoft.com/v1.0", alias="GRAPH_BASE_URL"
    )
    graph_scope: str = Field(
        default="https://graph.microsoft.com/.default", alias="GRAPH_SCOPE"
    )
    graph_access_token: str = Field(default="", alias="GRAPH_ACCESS_TOKEN")

    # Retry and timeouts
    max_retries: int = Field(default=3, ge=1, alias="GRAPH_MAX_RETRIES")
    request_timeout: float = Field(default=30.0, gt=0, alias="GRAPH_REQUEST_TIMEOUT")
    backoff_base_ms: int = Field(default=1000, ge=0, alias="GRAPH_BACKOFF_BASE_MS")
    backoff_jitter: float = Field(default=0.0, ge=0, alias="GRAPH_BACKOFF_JITTER")

    # Pagination and batching
    page_cap: int = Field(default=100, ge=1, alias="GRAPH_PAGE_CAP")
    batch_max_requests: int = Field(default=20, ge=1, alias="GRAPH_BATCH_MAX_REQUESTS")

    # Request headers
    user_agent: str = Field(default="graphwire/0.1", alias="GRAPH_USER_AGENT")
    consistency_level: str | None = Field(default=None, alias="GRAPH_CONSISTENCY_LEVEL")

    @classmethod
    def from_env(cls) -> "Settings":
        return cls.model_validate(dict(os.environ))


global_settings = Settings.from_env()
