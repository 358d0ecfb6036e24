from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Any

from jsonschema import Draft202012Validator


@dataclass
class BlockType:
    key: str
    label: str
    # JSON Schema (draft 2020-12) para ContentBlock.data
    schema: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "label": self.label, "schema": self.schema or {}}


BLOCK_TYPES: Dict[str, BlockType] = {
    "text": BlockType(
        key="text",
        label="Text",
        schema={
            "type": "object",
            "properties": {"content": {"type": "string"}},
            "required": ["content"],
        },
    ),
    "hero": BlockType(
        key="hero",
        label="Hero section",
        schema={
            "type": "object",
            "properties": {
                "title": {"type": "string"},
                "subtitle": {"type": "string"},
                "cta": {
                    "type": "object",
                    "properties": {
                        "label": {"type": "string"},
                        "url": {"type": "string"},
                    },
                },
            },
            "required": ["title"],
        },
    ),
    "faq": BlockType(
        key="faq",
        label="FAQ section",
        schema={
            "type": "object",
            "properties": {
                "items": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "question": {"type": "string"},
                            "answer": {"type": "string"},
                        },
                        "required": ["question", "answer"],
                    },
                },
            },
            "required": ["items"],
        },
    ),
}


def validate_block_data(block_type: str, data: Dict[str, Any]) -> None:
    """
    Valida ``data`` contra el schema del tipo de bloque.
    Lanza ValueError con la primera ruta inválida.
    """
    bt = BLOCK_TYPES.get(block_type)
    if bt is None:
        raise ValueError(f"Unknown block type '{block_type}'.")
    validator = Draft202012Validator(bt.schema)
    errors = sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.path])
    if errors:
        e = errors[0]
        path = ".".join([str(p) for p in e.path])
        raise ValueError(f"JSON Schema validation error at '{path}': {e.message}")
