"""Pydantic model for execution requests."""

from pydantic import BaseModel, ConfigDict, Field

MASK = "*****"


class ExecutionRequest(BaseModel):
    """Input accepted by `/execute` and by the task dispatcher."""

    model_config = ConfigDict(populate_by_name=True)

    cmd: str = Field(default="", description="Appended to the configured command prefix")
    user_id: str = Field(default="", alias="userID", description="Unique id of the initiating user")
    in_pz_files: list[str] = Field(default_factory=list, alias="inPzFiles", description="Platform data ids")
    in_pz_names: list[str] = Field(default_factory=list, alias="inPzNames", description="Local names for inPzFiles")
    in_ext_files: list[str] = Field(default_factory=list, alias="inExtFiles", description="External URLs")
    in_ext_names: list[str] = Field(default_factory=list, alias="inExtNames", description="Local names for inExtFiles")
    out_tiffs: list[str] = Field(default_factory=list, alias="outTiffs", description="GeoTIFFs to ingest")
    out_txts: list[str] = Field(default_factory=list, alias="outTxts", description="Text files to ingest")
    out_geojson: list[str] = Field(default_factory=list, alias="outGeoJson", description="GeoJSON files to ingest")
    ext_auth: str = Field(default="", alias="inExtAuthKey", description="Credential for external downloads")
    pz_auth: str = Field(default="", alias="pzAuthKey", description="Platform credential")
    pz_addr: str = Field(default="", alias="pzAddr", description="Platform base URL")

    @property
    def outputs(self) -> list[str]:
        return [*self.out_tiffs, *self.out_txts, *self.out_geojson]

    @property
    def needs_platform(self) -> bool:
        return bool(self.in_pz_files or self.outputs)

    def masked_json(self) -> str:
        """Serialized request safe for logs."""
        updates = {}
        if self.pz_auth:
            updates["pz_auth"] = MASK
        if self.ext_auth:
            updates["ext_auth"] = MASK
        return self.model_copy(update=updates).model_dump_json(by_alias=True, exclude_defaults=True)
