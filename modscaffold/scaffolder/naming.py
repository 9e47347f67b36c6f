"""Naming conventions derived from a raw module name.

Every directory, file, class, variable, constant and URL form used by the
generator comes from :func:`get_module_naming`; nothing else re-derives a
name from the raw input.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict

_VALID_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")
_VALID_OPERATION = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class InvalidModuleNameError(ValueError):
    """Raised when a module or operation name cannot be turned into identifiers."""


# ---------------------------------------------------------------------------
# Case conversions
# ---------------------------------------------------------------------------

def to_camel_case(value: str) -> str:
    """``'user-profile'`` -> ``'userProfile'``, ``'BlogPost'`` -> ``'blogPost'``."""
    spaced = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", value).lower()
    return re.sub(r"[-_\s]+(.)?", lambda m: (m.group(1) or "").upper(), spaced)


def to_pascal_case(value: str) -> str:
    """``'user-profile'`` -> ``'UserProfile'``."""
    camel = to_camel_case(value)
    return camel[:1].upper() + camel[1:]


def to_kebab_case(value: str) -> str:
    """``'userProfile'`` -> ``'user-profile'``."""
    dashed = re.sub(r"([a-z0-9])([A-Z])", r"\1-\2", value)
    return re.sub(r"[\s_-]+", "-", dashed).strip("-").lower()


def to_snake_case(value: str) -> str:
    """``'userProfile'`` -> ``'user_profile'``."""
    underscored = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", value)
    return re.sub(r"[\s_-]+", "_", underscored).strip("_").lower()


def to_constant_case(value: str) -> str:
    """``'userProfile'`` -> ``'USER_PROFILE'``."""
    return to_snake_case(value).upper()


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_module_name(name: str) -> str:
    """Return the trimmed module name or raise :class:`InvalidModuleNameError`."""
    if not isinstance(name, str) or not name.strip():
        raise InvalidModuleNameError("Module name is required")
    cleaned = name.strip()
    if not _VALID_NAME.match(cleaned):
        raise InvalidModuleNameError(
            f"Invalid module name {cleaned!r}: use letters, numbers, hyphens and "
            "underscores, starting with a letter or underscore"
        )
    return cleaned


def validate_operation_name(name: str) -> str:
    """Return the trimmed operation name or raise :class:`InvalidModuleNameError`."""
    cleaned = name.strip() if isinstance(name, str) else ""
    if not _VALID_OPERATION.match(cleaned):
        raise InvalidModuleNameError(
            f"Invalid operation name {name!r}: use letters, numbers and underscores"
        )
    return cleaned


# ---------------------------------------------------------------------------
# ModuleNaming
# ---------------------------------------------------------------------------

class ModuleNaming(BaseModel):
    """All naming forms of one module, derived once from the raw name."""
    model_config = ConfigDict(frozen=True)

    original: str
    directory: str
    file: str
    class_name: str
    variable: str
    constant: str
    url: str


def get_module_naming(module_name: str) -> ModuleNaming:
    """Derive every naming form from *module_name* (validated first)."""
    cleaned = validate_module_name(module_name)
    return ModuleNaming(
        original=cleaned,
        directory=to_kebab_case(cleaned),
        file=to_camel_case(cleaned),
        class_name=to_pascal_case(cleaned),
        variable=to_camel_case(cleaned),
        constant=to_constant_case(cleaned),
        url=to_kebab_case(cleaned),
    )
