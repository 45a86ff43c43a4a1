"""Pydantic request/response models for API endpoints."""

from pydantic import BaseModel

from hengdian.models import Attributes


class CreateRun(BaseModel):
    title: str = ""
    seed: int | None = None


class SelectPerks(BaseModel):
    perk_ids: list[str]


class AllocateAttributes(BaseModel):
    attributes: Attributes


class ChoiceBody(BaseModel):
    choice_id: str


class ImportRun(BaseModel):
    data: str
    title: str = ""


class UpdateSettings(BaseModel):
    sound_enabled: bool | None = None
    music_enabled: bool | None = None
    text_speed: str | None = None
    engine: dict | None = None
