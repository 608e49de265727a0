"""Transpiler emitting C++ that evaluates gates with the TFHE library."""

from __future__ import annotations

from .abstract_transpiler import AbstractTranspiler, TranspilerError
from .ir import Function, Node, Op, TypeKind
from .metadata import MetadataOutput

__all__ = ["TfheTranspiler"]

_FHE_OPS = {
    Op.AND: "bootsAND",
    Op.OR: "bootsOR",
    Op.NOT: "bootsNOT",
    Op.LITERAL: "bootsCONSTANT",
}

_KEY_PARAM = "const TFheGateBootstrappingCloudKeySet* bk"

_HEADER_TEMPLATE = """\
#ifndef {guard}
#define {guard}

#include "absl/status/status.h"
#include "tfhe/tfhe.h"
#include "tfhe/tfhe_io.h"

{signature};
#endif  // {guard}
"""

_PRELUDE_TEMPLATE = """\
#include <unordered_map>

#include "absl/status/status.h"
#include "tfhe/tfhe.h"
#include "tfhe/tfhe_io.h"

{signature} {{
  std::unordered_map<int, LweSample*> temp_nodes;

"""

_CONCLUSION = """\
  for (auto pair : temp_nodes) {
    delete_gate_bootstrapping_ciphertext(pair.second);
  }
  return absl::OkStatus();
}
"""


class TfheTranspiler(AbstractTranspiler):
    """Turns booleanified functions into C++ using TFHE gate operations."""

    @classmethod
    def node_reference(cls, node: Node) -> str:
        return f"temp_nodes[{node.id}]"

    @classmethod
    def param_bit_reference(cls, param: Node, offset: int) -> str:
        if param.flat_bit_count() == 1:
            if param.op in (Op.TUPLE_INDEX, Op.ARRAY_INDEX):
                return param.operand(0).name
            return param.name
        return f"&{param.name}[{offset}]"

    @classmethod
    def output_bit_reference(cls, output_arg: str, offset: int) -> str:
        return f"&{output_arg}[{offset}]"

    @classmethod
    def copy_to(cls, destination: str, source: str) -> str:
        return f"  bootsCOPY({destination}, {source}, bk);\n"

    @classmethod
    def initialize_node(cls, node: Node) -> str:
        return (
            f"  {cls.node_reference(node)} = "
            "new_gate_bootstrapping_ciphertext(bk->params);\n"
        )

    @classmethod
    def execute(cls, node: Node) -> str:
        """Emit the gate computing ``node``; unsupported ops raise TranspilerError."""
        tfhe_op = _FHE_OPS.get(node.op)
        if tfhe_op is None:
            raise TranspilerError("Unsupported Op kind.")

        operation = f"  {tfhe_op}({cls.node_reference(node)}, "
        if node.op is Op.LITERAL:
            if node.type.kind is not TypeKind.BITS or isinstance(
                node.value, (list, tuple)
            ):
                raise TranspilerError("Literal value is not bits-typed.")
            value = int(node.value)
            if value == 1:
                operation += "1, "
            elif value == 0:
                operation += "0, "
            else:
                # Other literals are only allowed as indexes into param arrays.
                if any(user.op is not Op.ARRAY_INDEX for user in node.users):
                    raise TranspilerError("Unsupported literal value.")
                return ""
        else:
            operation += "".join(
                f"{cls.node_reference(operand)}, " for operand in node.operands
            )
        return operation + "bk);\n\n"

    @classmethod
    def translate_header(
        cls, function: Function, metadata: MetadataOutput, header_path: str
    ) -> str:
        guard = cls.path_to_header_guard(header_path)
        signature = cls.function_signature(function, metadata)
        return _HEADER_TEMPLATE.format(guard=guard, signature=signature)

    @classmethod
    def function_signature(cls, function: Function, metadata: MetadataOutput) -> str:
        """Return the C++ declaration of the generated function, without ';'."""
        param_signatures: list[str] = []
        if not metadata.top_func_proto.returns_void:
            param_signatures.append("LweSample* result")
        param_signatures.extend(f"LweSample* {param.name}" for param in function.params)

        if not param_signatures:
            return f"absl::Status {function.name}({_KEY_PARAM})"
        joined = ", ".join(param_signatures)
        return f"absl::Status {function.name}({joined},\n  {_KEY_PARAM})"

    @classmethod
    def prelude(cls, function: Function, metadata: MetadataOutput) -> str:
        return _PRELUDE_TEMPLATE.format(
            signature=cls.function_signature(function, metadata)
        )

    @classmethod
    def conclusion(cls) -> str:
        return _CONCLUSION