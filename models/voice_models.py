"""Data models describing voices offered by a speech capability."""

from __future__ import annotations

from dataclasses import dataclass

from dataclasses_json import DataClassJsonMixin, LetterCase, dataclass_json

__all__: list[str] = ["VoiceInfo"]


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass(frozen=True)
class VoiceInfo(DataClassJsonMixin):
    """One entry of a capability's voice catalog.

    Attributes:
        id (str): Identifier passed back to the capability when submitting text.
        label (str): Human readable name.
        locale (str): Language tag, for example 'en' or 'en-GB'.
    """

    id: str
    label: str
    locale: str

    def __str__(self) -> str:
        return f"{self.id} ({self.label})"
