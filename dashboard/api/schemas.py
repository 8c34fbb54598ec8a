from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List


class CamelModel(BaseModel):
    # Accept both camelCase (dashboard client) and snake_case field names
    model_config = ConfigDict(populate_by_name=True)


class HueRoomToggleRequest(CamelModel):
    room: Optional[str] = None
    turn_on: Optional[bool] = Field(default=None, alias="turnOn")


class HueBrightnessRequest(CamelModel):
    room: Optional[str] = None
    brightness: float


class XY(BaseModel):
    x: float = Field(ge=0, le=1)
    y: float = Field(ge=0, le=1)


class HueColorRequest(CamelModel):
    room: Optional[str] = None
    xy: XY


class HueLightToggleRequest(CamelModel):
    light_id: str = Field(alias="lightId")
    turn_on: Optional[bool] = Field(default=None, alias="turnOn")


class SceneActivateRequest(CamelModel):
    scene_id: str = Field(alias="sceneId")


class SpotifyPlayRequest(CamelModel):
    context_uri: Optional[str] = Field(default=None, alias="contextUri")
    uris: Optional[List[str]] = None
    device_id: Optional[str] = Field(default=None, alias="deviceId")


class SpotifyTransferRequest(CamelModel):
    device_id: str = Field(alias="deviceId")
    play: bool = True
