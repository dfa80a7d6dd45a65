"""
Manga page analysis models
비전 모델 응답(JSON)을 검증/정규화하는 pydantic 모델
"""
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .narration import Gender


def _as_str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return ["" if item is None else item if isinstance(item, str) else str(item) for item in value]


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


class Character(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    description: str = ""
    position: str = ""
    expression: str = ""
    gender: Gender = Gender.NEUTRAL
    is_speaking: bool = Field(default=False, alias="isSpeaking")

    @field_validator("description", "position", "expression", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _as_str(value)

    @field_validator("gender", mode="before")
    @classmethod
    def _coerce_gender(cls, value: Any) -> Gender:
        return Gender.normalize(value)

    @field_validator("is_speaking", mode="before")
    @classmethod
    def _coerce_speaking(cls, value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() == "true"
        return bool(value)


class Panel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: int = 0
    setting: str = ""
    characters: List[Character] = Field(default_factory=list)
    actions: List[str] = Field(default_factory=list)
    emotions: List[str] = Field(default_factory=list)
    dialogue: List[str] = Field(default_factory=list)

    @field_validator("setting", mode="before")
    @classmethod
    def _coerce_setting(cls, value: Any) -> str:
        return _as_str(value)

    @field_validator("actions", "emotions", "dialogue", mode="before")
    @classmethod
    def _coerce_text_list(cls, value: Any) -> List[str]:
        return _as_str_list(value)

    @field_validator("characters", mode="before")
    @classmethod
    def _coerce_characters(cls, value: Any) -> list:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, (dict, Character))]


class Analysis(BaseModel):
    """
    한 페이지 분석 결과

    reading_order는 0..len(panels)-1 의 (부분) 순열이며,
    응답에 없으면 패널 인덱스 순서가 기본값입니다.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    overall_scene: str = Field(default="", alias="overallScene")
    reading_order: List[int] = Field(default_factory=list, alias="readingOrder")
    panels: List[Panel] = Field(default_factory=list)

    @field_validator("overall_scene", mode="before")
    @classmethod
    def _coerce_scene(cls, value: Any) -> str:
        return _as_str(value)

    @field_validator("reading_order", mode="before")
    @classmethod
    def _coerce_order(cls, value: Any) -> List[int]:
        if not isinstance(value, list):
            return []
        order = []
        for item in value:
            # bool은 int의 하위 클래스이므로 제외
            if isinstance(item, bool):
                continue
            if isinstance(item, int):
                order.append(item)
            elif isinstance(item, str) and item.strip().isdigit():
                order.append(int(item.strip()))
        return order

    @field_validator("panels", mode="before")
    @classmethod
    def _coerce_panels(cls, value: Any) -> list:
        if not isinstance(value, list):
            return []
        panels = []
        for index, item in enumerate(value):
            if isinstance(item, Panel):
                panels.append(item)
            elif isinstance(item, dict):
                data = dict(item)
                if not isinstance(data.get("id"), int) or isinstance(data.get("id"), bool):
                    data["id"] = index
                panels.append(data)
        return panels

    @model_validator(mode="after")
    def _default_reading_order(self) -> "Analysis":
        if not self.reading_order and self.panels:
            # frozen 모델이므로 object.__setattr__ 사용
            object.__setattr__(self, "reading_order", list(range(len(self.panels))))
        return self

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")
