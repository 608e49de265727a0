"""Metadata describing the top-level function handed to the code generator."""

from __future__ import annotations

from dataclasses import dataclass, field

__all__ = ["FunctionParameter", "FunctionPrototype", "MetadataOutput"]


@dataclass(frozen=True)
class FunctionParameter:
    """One parameter of the top-level function."""

    name: str
    is_const: bool = False
    is_reference: bool = False

    @property
    def is_out_param(self) -> bool:
        """Whether the function may write through this parameter."""
        return self.is_reference and not self.is_const


@dataclass
class FunctionPrototype:
    """Name, parameters and return kind of the top-level function."""

    name: str = ""
    params: list[FunctionParameter] = field(default_factory=list)
    returns_void: bool = False


@dataclass
class MetadataOutput:
    """Metadata about the function that code is generated for."""

    top_func_proto: FunctionPrototype = field(default_factory=FunctionPrototype)

    def out_params(self) -> list[FunctionParameter]:
        """Non-const reference parameters, in declaration order."""
        return [param for param in self.top_func_proto.params if param.is_out_param]

    def num_out_params(self) -> int:
        """Count of outputs: the return value (unless void) plus out params."""
        return int(not self.top_func_proto.returns_void) + len(self.out_params())