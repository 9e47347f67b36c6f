"""modscaffold scaffolder -- names, paths and rendered sources for one module.

Everything here is side-effect free except :class:`FileWriter`, which is the
single place generated text reaches the disk.

Quick usage::

    from modscaffold.config import Config
    from modscaffold.scaffolder import EmitterSet, ModuleLayout, OperationSet, get_module_naming

    naming = get_module_naming("blogPost")
    layout = ModuleLayout.build(Config(), naming, OperationSet.crud())
    emitters = EmitterSet(layout.operation_set.kind)
    text = emitters.types.render("create", naming)
"""

from modscaffold.scaffolder.emitters import EmitterSet, RoutesEmitter, TemplateEmitter
from modscaffold.scaffolder.filesystem import FileWriter, GenerationMode
from modscaffold.scaffolder.inspector import ModuleDescriptor, ModuleStateInspector
from modscaffold.scaffolder.layout import (
    CRUD_OPERATIONS,
    TEST_CATEGORIES,
    ArtifactKind,
    ModuleLayout,
    OperationKind,
    OperationSet,
)
from modscaffold.scaffolder.naming import InvalidModuleNameError, ModuleNaming, get_module_naming
from modscaffold.scaffolder.templates import TemplateRenderer

__all__ = [
    "CRUD_OPERATIONS",
    "TEST_CATEGORIES",
    "ArtifactKind",
    "EmitterSet",
    "FileWriter",
    "GenerationMode",
    "InvalidModuleNameError",
    "ModuleDescriptor",
    "ModuleLayout",
    "ModuleNaming",
    "ModuleStateInspector",
    "OperationKind",
    "OperationSet",
    "RoutesEmitter",
    "TemplateEmitter",
    "TemplateRenderer",
    "get_module_naming",
]
