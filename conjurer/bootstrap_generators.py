from __future__ import annotations

from pathlib import Path

from conjurer.core.options import RequiredDefaults
from conjurer.core.versions import ProjectInfo, format_python_version, parse_product_name_and_version
from conjurer.registry.generator_registry import GeneratorKind, GeneratorRegistry


def _python_defaults(project: ProjectInfo, _input_file: Path) -> RequiredDefaults:
    return {
        "packageName": lambda: project.name,
        "packageVersion": lambda: format_python_version(project.version),
    }


def _typescript_defaults(project: ProjectInfo, _input_file: Path) -> RequiredDefaults:
    return {
        "packageName": lambda: project.name,
        "packageVersion": lambda: project.version,
    }


def _rust_defaults(project: ProjectInfo, _input_file: Path) -> RequiredDefaults:
    return {
        "crateName": lambda: project.name,
        "crateVersion": lambda: project.version,
    }


def _generic_defaults(_project: ProjectInfo, input_file: Path) -> RequiredDefaults:
    product = parse_product_name_and_version(input_file.name)
    return {
        "productName": lambda: product.name,
        "productVersion": lambda: product.version,
    }


def build_generator_registry() -> GeneratorRegistry:
    """
    Register the generator kinds shipped with the harness.
    """
    reg = GeneratorRegistry()
    reg.register(GeneratorKind("python", "Python client/server bindings", _python_defaults, "conjure-python"))
    reg.register(GeneratorKind("typescript", "TypeScript client bindings", _typescript_defaults, "conjure-typescript"))
    reg.register(GeneratorKind("rust", "Rust crate", _rust_defaults, "conjure-rust"))
    reg.register(GeneratorKind("java", "Java objects/services (needs a verb flag such as --objects)", default_executable="conjure-java", requires_verb_flag=True))
    reg.register(GeneratorKind("generic", "Any generator that takes productName/productVersion", _generic_defaults))
    reg.register(GeneratorKind("custom", "Any generator; options are passed through unchanged"))
    return reg
