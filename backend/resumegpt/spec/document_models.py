from enum import Enum
from inspect import isclass
from typing import Any, ClassVar, Dict, List, Mapping, Tuple, Type, get_args, get_origin

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class FieldKind(str, Enum):
    TEXT = "text"
    OBJECT = "object"
    TEXT_LIST = "text_list"
    RECORD_LIST = "record_list"


def as_text(value: Any) -> str:
    """Coerce model drift (numbers, lists of lines) into a plain string."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool) or value is None:
        raise ValueError(f"expected text, got {type(value).__name__}")
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return "\n".join(value)
    raise ValueError(f"expected text, got {type(value).__name__}")


def as_text_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ValueError(f"expected a list of strings, got {type(value).__name__}")
    items = []
    for item in value:
        try:
            items.append(as_text(item))
        except ValueError:
            continue
    return items


class _Record(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    # Keys a record cannot exist without
    identity_fields: ClassVar[Tuple[str, ...]] = ()

    @classmethod
    def text_or_blank(cls, value: Any, field_name: str) -> str:
        """Null means "not given": blank for optional keys, an error for identity keys."""
        if value is None:
            if field_name in cls.identity_fields:
                raise ValueError(f"{field_name} is required")
            return ""
        return as_text(value)


class Contact(_Record):
    email: str = ""
    phone: str = ""
    location: str = ""
    linkedin: str = ""
    github: str = ""
    blogs: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return "" if v is None else as_text(v)


class ExperienceEntry(_Record):
    identity_fields: ClassVar[Tuple[str, ...]] = ("title", "company")

    title: str
    company: str
    location: str = ""
    period: str = ""
    description: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def coerce_text(cls, v, info: ValidationInfo):
        return cls.text_or_blank(v, info.field_name)


class EducationEntry(_Record):
    identity_fields: ClassVar[Tuple[str, ...]] = ("degree", "institution")

    degree: str
    institution: str
    year: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def coerce_text(cls, v, info: ValidationInfo):
        return cls.text_or_blank(v, info.field_name)


class ProjectEntry(_Record):
    identity_fields: ClassVar[Tuple[str, ...]] = ("name",)

    name: str
    description: str = ""
    techStack: List[str] = Field(default_factory=list)

    @field_validator("name", "description", mode="before")
    @classmethod
    def coerce_text(cls, v, info: ValidationInfo):
        return cls.text_or_blank(v, info.field_name)

    @field_validator("techStack", mode="before")
    @classmethod
    def coerce_tech_stack(cls, v):
        return as_text_list(v)


class Resume(BaseModel):
    """Canonical resume state for one session. Always total."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    # Text lists whose duplicates are removed on validation
    set_like_fields: ClassVar[Tuple[str, ...]] = ("skills",)

    name: str = ""
    title: str = ""
    contact: Contact = Field(default_factory=Contact)
    summary: str = ""
    experience: List[ExperienceEntry] = Field(default_factory=list)
    education: List[EducationEntry] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    projects: List[ProjectEntry] = Field(default_factory=list)
    achievements: List[str] = Field(default_factory=list)


class CoverLetter(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    set_like_fields: ClassVar[Tuple[str, ...]] = ()

    recipientName: str = ""
    recipientTitle: str = ""
    companyName: str = ""
    companyAddress: str = ""
    jobTitle: str = ""
    senderName: str = ""
    senderEmail: str = ""
    senderPhone: str = ""
    senderAddress: str = ""
    date: str = ""
    greeting: str = ""
    opening: str = ""
    body: str = ""
    closing: str = ""
    signature: str = ""


def _kind_of(annotation: Any) -> FieldKind:
    if get_origin(annotation) in (list, List):
        (item,) = get_args(annotation)
        if isclass(item) and issubclass(item, BaseModel):
            return FieldKind.RECORD_LIST
        return FieldKind.TEXT_LIST
    if isclass(annotation) and issubclass(annotation, BaseModel):
        return FieldKind.OBJECT
    return FieldKind.TEXT


def field_kinds(model: Type[BaseModel]) -> Dict[str, FieldKind]:
    return {name: _kind_of(info.annotation) for name, info in model.model_fields.items()}


def nested_model(model: Type[BaseModel], field: str) -> Type[BaseModel]:
    """Record or object model behind an OBJECT / RECORD_LIST field."""
    annotation = model.model_fields[field].annotation
    if get_origin(annotation) in (list, List):
        (annotation,) = get_args(annotation)
    return annotation


def is_well_formed(data: Any, model: Type[BaseModel] = Resume) -> bool:
    """Structural check on a raw document dict: total, with correctly shaped collections."""
    if not isinstance(data, Mapping):
        return False

    for name, kind in field_kinds(model).items():
        if name not in data:
            return False
        value = data[name]

        if kind is FieldKind.TEXT and not isinstance(value, str):
            return False
        if kind is FieldKind.OBJECT and not isinstance(value, Mapping):
            return False
        if kind is FieldKind.TEXT_LIST:
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                return False
        if kind is FieldKind.RECORD_LIST:
            if not isinstance(value, list) or not all(isinstance(v, Mapping) for v in value):
                return False
    return True
