"""Definitions of the user-facing core options and how they reach a frontend."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Protocol


@dataclass(frozen=True)
class OptionDefinition:
    """One core option: its key, texts, allowed values and default."""

    key: str
    desc: Optional[str]
    info: Optional[str]
    values: tuple[str, ...]
    default_value: Optional[str]


class Language(IntEnum):
    """Frontend languages, in frontend numbering."""

    ENGLISH = 0
    JAPANESE = 1
    FRENCH = 2
    SPANISH = 3
    GERMAN = 4
    ITALIAN = 5
    DUTCH = 6
    PORTUGUESE_BRAZIL = 7
    PORTUGUESE_PORTUGAL = 8
    RUSSIAN = 9
    KOREAN = 10
    CHINESE_TRADITIONAL = 11
    CHINESE_SIMPLIFIED = 12
    ESPERANTO = 13
    POLISH = 14
    VIETNAMESE = 15
    ARABIC = 16
    GREEK = 17
    TURKISH = 18


LANGUAGE_LAST = len(Language)

OPTION_DEFS_US: tuple[OptionDefinition, ...] = (
    OptionDefinition(
        "vb_3dmode",
        "3D mode",
        "Select the 3D mode. Anaglyph - used in conjunction with classic dual-lens-color glasses. "
        "Cyberscope - intended for use with the CyberScope 3D device. sidebyside - the left-eye "
        "image is displayed on the left, and the right-eye image is displayed on the right. "
        "vli - Vertical lines alternate between left and right view. hli - Horizontal lines "
        "alternate between left and right view.",
        ("anaglyph", "cyberscope", "side-by-side", "vli", "hli"),
        "anaglyph",
    ),
    OptionDefinition(
        "vb_anaglyph_preset",
        "Anaglyph preset",
        "Anaglyph preset colors.",
        (
            "disabled",
            "red & blue",
            "red & cyan",
            "red & electric cyan",
            "green & magenta",
            "yellow & blue",
        ),
        "disabled",
    ),
    OptionDefinition(
        "vb_color_mode",
        "Palette",
        "",
        (
            "black & red",
            "black & white",
            "black & blue",
            "black & cyan",
            "black & electric cyan",
            "black & green",
            "black & magenta",
            "black & yellow",
        ),
        "black & red",
    ),
    OptionDefinition(
        "vb_right_analog_to_digital",
        "Right analog to digital",
        "",
        ("disabled", "enabled", "invert x", "invert y", "invert both"),
        "disabled",
    ),
    OptionDefinition(
        "vb_cpu_emulation",
        "CPU emulation  (Restart)",
        "Choose between faster and accurate (slower) emulation.",
        ("accurate", "fast"),
        "fast",
    ),
)


class CoreOptionsFrontend(Protocol):
    """The frontend calls needed to register options."""

    def get_core_options_version(self) -> Optional[int]:
        """Options interface version, or None if the frontend cannot tell."""

    def get_language(self) -> Optional[int]:
        """Frontend language number, or None if unknown."""

    def set_core_options_intl(
        self,
        us: Sequence[OptionDefinition],
        local: Optional[Sequence[OptionDefinition]],
    ) -> None:
        """Register the options with their English and local texts."""

    def set_variables(self, variables: list[tuple[str, Optional[str]]]) -> None:
        """Register options through the old key/value-string interface."""


def option_values_string(definition: OptionDefinition) -> Optional[str]:
    """Build the "desc; default|other|..." string of the old interface.

    Returns None when the option has no description or no values.
    """
    if definition.desc is None or not definition.values:
        return None
    default_index = 0
    if definition.default_value is not None:
        for index, value in enumerate(definition.values):
            if value == definition.default_value:
                default_index = index
    ordered = [definition.values[default_index]]
    ordered.extend(v for i, v in enumerate(definition.values) if i != default_index)
    return f"{definition.desc}; " + "|".join(ordered)


def legacy_variables(
    definitions: Iterable[OptionDefinition],
) -> list[tuple[str, Optional[str]]]:
    """Key/value-string pairs for every definition, in order."""
    return [(d.key, option_values_string(d)) for d in definitions]


def register_core_options(
    frontend: Optional[CoreOptionsFrontend],
    translations: Optional[Mapping[int, Sequence[OptionDefinition]]] = None,
) -> None:
    """Hand the option definitions to the frontend by the best interface it has."""
    if frontend is None:
        return
    version = frontend.get_core_options_version()
    if version is not None and version >= 1:
        local = None
        language = frontend.get_language()
        if (
            language is not None
            and 0 <= language < LANGUAGE_LAST
            and language != Language.ENGLISH
            and translations
        ):
            local = translations.get(language)
        frontend.set_core_options_intl(OPTION_DEFS_US, local)
    else:
        frontend.set_variables(legacy_variables(OPTION_DEFS_US))