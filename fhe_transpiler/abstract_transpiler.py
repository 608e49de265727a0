"""Shared machinery for turning booleanified IR functions into source code."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator

from .ir import ArrayType, Function, Node, Op, TupleType, TypeKind
from .metadata import FunctionParameter, MetadataOutput

__all__ = ["TranspilerError", "AbstractTranspiler"]

_PASSIVE_OPS = frozenset(
    {Op.ARRAY, Op.ARRAY_INDEX, Op.CONCAT, Op.PARAM, Op.SHRL, Op.TUPLE, Op.TUPLE_INDEX}
)
_BIT_SLICE_CHAIN_OPS = frozenset({Op.ARRAY_INDEX, Op.BIT_SLICE, Op.PARAM, Op.TUPLE_INDEX})


class TranspilerError(ValueError):
    """The function cannot be expressed by the transpiler."""


class AbstractTranspiler(ABC):
    """Base for transpilers; subclasses supply the target-language snippets."""

    @classmethod
    def translate(cls, function: Function, metadata: MetadataOutput) -> str:
        """Return the full source implementing ``function``."""
        prelude = cls.prelude(function, metadata)
        body = cls._translate_nodes(function)
        outputs = cls.collect_outputs(function, metadata)
        return prelude + body + outputs + cls.conclusion()

    @staticmethod
    def path_to_header_guard(header_path: str) -> str:
        """Derive an include guard from the file name of ``header_path``."""
        if header_path == "-":
            return "FHE_GENERATE_H_"
        file_name = header_path.split("/")[-1]
        guard = "".join(
            c.upper() if c.isascii() and c.isalnum() else "_" for c in file_name
        )
        if not guard:
            raise TranspilerError("Invalid header_path")
        return guard + "_"

    @staticmethod
    def get_num_out_params(metadata: MetadataOutput) -> int:
        """Number of outputs: the return value (unless void) plus out params."""
        return metadata.num_out_params()

    @classmethod
    def collect_outputs(cls, function: Function, metadata: MetadataOutput) -> str:
        """Emit copies of every output bit into the result and out params."""
        return_value = function.return_value
        if return_value.type.kind is TypeKind.TUPLE and cls.get_num_out_params(metadata) != 1:
            elements = list(return_value.operands)
        else:
            elements = [return_value]
        if not elements:
            return ""

        pieces: list[str] = []
        remaining = iter(elements)
        if not metadata.top_func_proto.returns_void:
            pieces.append(cls._collect_node_value(next(remaining), "result", 0))

        params = cls._matching_out_params(metadata.top_func_proto.params)
        for element in remaining:
            param = next(params)
            pieces.append(cls._collect_node_value(element, param.name, 0))
        return "".join(pieces)

    @staticmethod
    def _matching_out_params(
        params: list[FunctionParameter],
    ) -> Iterator[FunctionParameter]:
        last_name = ""
        for param in params:
            last_name = param.name
            if param.is_out_param:
                yield param
        raise TranspilerError(
            f"No matching in/out param for function param: {last_name}"
        )

    @classmethod
    @abstractmethod
    def translate_header(
        cls, function: Function, metadata: MetadataOutput, header_path: str
    ) -> str:
        """Return the header declaring the generated function."""

    @classmethod
    @abstractmethod
    def node_reference(cls, node: Node) -> str:
        """Expression naming the storage for ``node``."""

    @classmethod
    @abstractmethod
    def output_bit_reference(cls, output_arg: str, offset: int) -> str:
        """Expression naming bit ``offset`` of output ``output_arg``."""

    @classmethod
    @abstractmethod
    def param_bit_reference(cls, param: Node, offset: int) -> str:
        """Expression naming bit ``offset`` of parameter ``param``."""

    @classmethod
    @abstractmethod
    def copy_to(cls, destination: str, source: str) -> str:
        """Statement copying ``source`` into ``destination``."""

    @classmethod
    @abstractmethod
    def initialize_node(cls, node: Node) -> str:
        """Statement allocating storage for ``node``."""

    @classmethod
    @abstractmethod
    def execute(cls, node: Node) -> str:
        """Statement computing ``node``."""

    @classmethod
    @abstractmethod
    def prelude(cls, function: Function, metadata: MetadataOutput) -> str:
        """Code preceding the function body."""

    @classmethod
    @abstractmethod
    def conclusion(cls) -> str:
        """Code closing the function body."""

    @classmethod
    def _offset_of(cls, node: Node) -> int:
        if node.op is Op.ARRAY_INDEX:
            return cls._offset_in_array_index(node)
        if node.op is Op.TUPLE_INDEX:
            return cls._offset_in_tuple_index(node)
        return 0

    @classmethod
    def _offset_in_array_index(cls, array_index: Node) -> int:
        offset = cls._offset_of(array_index.operand(0))
        array_type = array_index.array.type
        if not isinstance(array_type, ArrayType):
            raise TranspilerError(f"{array_index.array.name} is not an array")
        element_bits = array_type.element_type.flat_bit_count()
        for index in array_index.indices:
            if index.op is not Op.LITERAL:
                raise TranspilerError("Only literal indexes into arrays are supported.")
            offset += element_bits * int(index.value)
        return offset

    @classmethod
    def _offset_in_tuple_index(cls, tuple_index: Node) -> int:
        source = tuple_index.operand(0)
        offset = cls._offset_of(source)
        tuple_type = source.type
        if not isinstance(tuple_type, TupleType):
            raise TranspilerError(f"{source.name} is not a tuple")
        offset += sum(
            element.flat_bit_count()
            for element in tuple_type.element_types[: tuple_index.index]
        )
        return offset

    @classmethod
    def _handle_bit_slice(cls, bit_slice: Node) -> str:
        operand = bit_slice.operand(0)
        if operand.op in (Op.ARRAY_INDEX, Op.TUPLE_INDEX):
            slice_idx = cls._offset_of(operand) + bit_slice.start
            while operand.op is not Op.PARAM:
                operand = operand.operand(0)
                if operand.op not in _BIT_SLICE_CHAIN_OPS:
                    raise TranspilerError(f"Invalid BitSlice operand: {operand}")
        elif operand.op is Op.PARAM:
            slice_idx = bit_slice.start
        else:
            raise TranspilerError(f"Invalid BitSlice operand: {operand}")

        # A slice past the end comes from an overflowing shift and is ignored.
        if operand.flat_bit_count() == slice_idx:
            return ""
        return (
            cls.copy_to(
                cls.node_reference(bit_slice), cls.param_bit_reference(operand, slice_idx)
            )
            + "\n"
        )

    @classmethod
    def _collect_node_value(cls, node: Node, output_arg: str, output_offset: int) -> str:
        type_ = node.type
        kind = type_.kind
        if kind is TypeKind.BITS:
            bit_count = type_.flat_bit_count()
            if bit_count == 1:
                while node.op is Op.CONCAT:
                    node = node.operand(0)
                return cls.copy_to(
                    cls.output_bit_reference(output_arg, output_offset),
                    cls.node_reference(node),
                )
            # Operand 0 is the most significant bit; the host is little-endian.
            return "".join(
                cls._collect_node_value(
                    node.operand(i), output_arg, output_offset + (bit_count - i - 1)
                )
                for i in range(bit_count)
            )
        if kind is TypeKind.ARRAY:
            stride = type_.element_type.flat_bit_count()
            return "".join(
                cls._collect_node_value(
                    node.operand(i), output_arg, output_offset + i * stride
                )
                for i in range(type_.size)
            )
        if kind is TypeKind.TUPLE:
            pieces = []
            sub_offset = 0
            for i in range(type_.size):
                element = node.operand(i)
                pieces.append(
                    cls._collect_node_value(element, output_arg, output_offset + sub_offset)
                )
                sub_offset += element.flat_bit_count()
            return "".join(pieces)
        raise TranspilerError(f"Unsupported type kind: {kind}")

    @classmethod
    def _translate_nodes(cls, function: Function) -> str:
        pieces: list[str] = []
        for node in function.topo_sort():
            # Passive nodes are resolved when bit slices and outputs walk the graph.
            if node.op in _PASSIVE_OPS:
                continue
            pieces.append(cls.initialize_node(node))
            if node.op is Op.BIT_SLICE:
                pieces.append(cls._handle_bit_slice(node))
            else:
                pieces.append(cls.execute(node))
        return "".join(pieces)