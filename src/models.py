from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class FormElement(BaseModel):
    name: str
    path: str
    data_type: str = "string"
    required: bool = False
    readonly: bool = False
    children: List["FormElement"] = Field(default_factory=list)


class FormDefinition(BaseModel):
    form_id: str
    title: str
    filename: str
    xml: str
    created_by: str
    created_at: datetime
    root: FormElement

    def dump_tree(self) -> List[str]:
        """Render the element tree as indented lines for diagnostics."""
        lines = [f"Form {self.form_id!r} ({self.title})"]

        def walk(element: FormElement, depth: int) -> None:
            flags = []
            if element.required:
                flags.append("required")
            if element.readonly:
                flags.append("readonly")
            suffix = f" [{', '.join(flags)}]" if flags else ""
            lines.append(f"{'  ' * depth}{element.name}: {element.data_type}{suffix}")
            for child in element.children:
                walk(child, depth + 1)

        walk(self.root, 1)
        return lines

    def summary(self) -> "FormSummary":
        return FormSummary(
            form_id=self.form_id,
            title=self.title,
            filename=self.filename,
            created_by=self.created_by,
            created_at=self.created_at,
        )


class FormSummary(BaseModel):
    form_id: str
    title: str
    filename: str
    created_by: str
    created_at: datetime


class UploadRequest(BaseModel):
    form_name: Optional[str] = None
    form_xml: Optional[str] = None
    filename: str = "default.xml"


class AuthenticatedUser(BaseModel):
    nickname: str
    method: Literal["session", "oauth"] = "session"


FormElement.model_rebuild()
