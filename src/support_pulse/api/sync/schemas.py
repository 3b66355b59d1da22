from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from support_pulse.connectors.zendesk import ZendeskCredentials


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class HelpdeskAccess(_CamelModel):
    domain: str = Field(min_length=1)
    email: str = Field(min_length=1)
    token: str = Field(min_length=1, repr=False)

    def credentials(self) -> ZendeskCredentials:
        return ZendeskCredentials(email=self.email, token=self.token)


class SyncRequest(HelpdeskAccess):
    instance_id: str = Field(alias="instanceId", min_length=1)
    start_time: int = Field(default=0, alias="startTime", ge=0)


class StaffSyncRequest(HelpdeskAccess):
    instance_id: str = Field(alias="instanceId", min_length=1)
    roles: Optional[list[str]] = None


class AgentStatusRequest(HelpdeskAccess):
    pass
