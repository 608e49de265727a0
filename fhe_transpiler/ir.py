"""A small in-memory dataflow IR of typed nodes built into functions."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Union

__all__ = [
    "Op",
    "TypeKind",
    "BitsType",
    "ArrayType",
    "TupleType",
    "Type",
    "Node",
    "Function",
    "FunctionBuilder",
]


class Op(str, Enum):
    """Operation performed by a node."""

    AND = "and"
    OR = "or"
    NOT = "not"
    EQ = "eq"
    LITERAL = "literal"
    PARAM = "param"
    CONCAT = "concat"
    TUPLE = "tuple"
    ARRAY = "array"
    ARRAY_INDEX = "array_index"
    TUPLE_INDEX = "tuple_index"
    BIT_SLICE = "bit_slice"
    SHRL = "shrl"


class TypeKind(str, Enum):
    """Broad category of a type."""

    BITS = "bits"
    ARRAY = "array"
    TUPLE = "tuple"


@dataclass(frozen=True)
class BitsType:
    """A fixed-width bit vector."""

    width: int

    def __post_init__(self) -> None:
        if self.width < 0:
            raise ValueError(f"bit width must not be negative, got {self.width}")

    @property
    def kind(self) -> TypeKind:
        return TypeKind.BITS

    def flat_bit_count(self) -> int:
        """Number of bits in the flattened type."""
        return self.width

    def __str__(self) -> str:
        return f"bits[{self.width}]"


@dataclass(frozen=True)
class ArrayType:
    """A fixed-size array of elements of one type."""

    size: int
    element_type: "Type"

    def __post_init__(self) -> None:
        if self.size < 0:
            raise ValueError(f"array size must not be negative, got {self.size}")

    @property
    def kind(self) -> TypeKind:
        return TypeKind.ARRAY

    def flat_bit_count(self) -> int:
        """Number of bits in the flattened type."""
        return self.size * self.element_type.flat_bit_count()

    def __str__(self) -> str:
        return f"{self.element_type}[{self.size}]"


@dataclass(frozen=True)
class TupleType:
    """An ordered collection of elements of possibly differing types."""

    element_types: tuple["Type", ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "element_types", tuple(self.element_types))

    @property
    def kind(self) -> TypeKind:
        return TypeKind.TUPLE

    @property
    def size(self) -> int:
        return len(self.element_types)

    def flat_bit_count(self) -> int:
        """Number of bits in the flattened type."""
        return sum(element.flat_bit_count() for element in self.element_types)

    def __str__(self) -> str:
        return "(" + ", ".join(str(element) for element in self.element_types) + ")"


Type = Union[BitsType, ArrayType, TupleType]


@dataclass(eq=False)
class Node:
    """One operation in a function, identified by a unique id."""

    id: int
    op: Op
    type: Type
    operands: tuple["Node", ...] = ()
    given_name: str | None = None
    value: object = None
    index: int | None = None
    start: int | None = None
    users: list["Node"] = field(default_factory=list, repr=False)

    @property
    def name(self) -> str:
        """The node's explicit name, or one derived from its op and id."""
        if self.given_name:
            return self.given_name
        return f"{self.op.value}.{self.id}"

    def operand(self, index: int) -> "Node":
        """Return operand number ``index``."""
        if not 0 <= index < len(self.operands):
            raise IndexError(
                f"node {self.name} has no operand {index} "
                f"({len(self.operands)} operands)"
            )
        return self.operands[index]

    @property
    def array(self) -> "Node":
        """The array operand of an array-index node."""
        if self.op is not Op.ARRAY_INDEX:
            raise AttributeError(f"{self.name} is not an array index")
        return self.operands[0]

    @property
    def indices(self) -> tuple["Node", ...]:
        """The index operands of an array-index node."""
        if self.op is not Op.ARRAY_INDEX:
            raise AttributeError(f"{self.name} is not an array index")
        return self.operands[1:]

    def flat_bit_count(self) -> int:
        """Number of bits in the node's flattened type."""
        return self.type.flat_bit_count()

    def __str__(self) -> str:
        args = ", ".join(operand.name for operand in self.operands)
        return f"{self.name}: {self.type} = {self.op.value}({args})"


class Function:
    """A built function: its nodes and the node it returns."""

    def __init__(self, name: str, nodes: Sequence[Node], return_value: Node) -> None:
        self.name = name
        self.nodes: tuple[Node, ...] = tuple(nodes)
        self.return_value = return_value

    @property
    def params(self) -> list[Node]:
        """The parameter nodes, in declaration order."""
        return [node for node in self.nodes if node.op is Op.PARAM]

    def topo_sort(self) -> list[Node]:
        """Return every node, each after all of its operands."""
        ordered: list[Node] = []
        seen: set[int] = set()
        for root in self.nodes:
            if id(root) in seen:
                continue
            stack: list[tuple[Node, int]] = [(root, 0)]
            while stack:
                node, next_operand = stack.pop()
                if next_operand == 0 and id(node) in seen:
                    continue
                seen.add(id(node))
                pending = node.operands[next_operand:]
                child = next((op for op in pending if id(op) not in seen), None)
                if child is None:
                    ordered.append(node)
                    continue
                position = node.operands.index(child, next_operand)
                stack.append((node, position + 1))
                stack.append((child, 0))
        return ordered

    def __repr__(self) -> str:
        return f"Function({self.name!r}, {len(self.nodes)} nodes)"


def _infer_type(value: object) -> Type:
    if isinstance(value, bool):
        return BitsType(1)
    if isinstance(value, int):
        if value < 0:
            raise ValueError("literal bit values must not be negative")
        return BitsType(max(1, value.bit_length()))
    if isinstance(value, tuple):
        return TupleType(tuple(_infer_type(element) for element in value))
    if isinstance(value, list):
        if not value:
            raise ValueError("cannot infer the type of an empty array literal")
        return ArrayType(len(value), _infer_type(value[0]))
    raise TypeError(f"unsupported literal value: {value!r}")


def _check_value(value: object, type_: Type) -> None:
    if isinstance(type_, BitsType):
        if not isinstance(value, int) or not 0 <= value < (1 << type_.width) or (
            type_.width == 0 and value != 0
        ):
            raise ValueError(f"literal {value!r} does not fit {type_}")
    elif isinstance(type_, ArrayType):
        if not isinstance(value, (list, tuple)) or len(value) != type_.size:
            raise ValueError(f"literal {value!r} does not match {type_}")
        for element in value:
            _check_value(element, type_.element_type)
    else:
        if not isinstance(value, (list, tuple)) or len(value) != type_.size:
            raise ValueError(f"literal {value!r} does not match {type_}")
        for element, element_type in zip(value, type_.element_types):
            _check_value(element, element_type)


class FunctionBuilder:
    """Builds a function node by node; ids are assigned from 1 upwards."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._nodes: list[Node] = []
        self._members: set[int] = set()
        self._param_names: set[str] = set()

    def _add(
        self,
        op: Op,
        type_: Type,
        operands: Iterable[Node] = (),
        name: str | None = None,
        **attributes: object,
    ) -> Node:
        operands = tuple(operands)
        for operand in operands:
            if id(operand) not in self._members:
                raise ValueError(
                    f"operand {operand.name} does not belong to function {self.name}"
                )
        node = Node(
            id=len(self._nodes) + 1,
            op=op,
            type=type_,
            operands=operands,
            given_name=name or None,
            **attributes,
        )
        for operand in operands:
            operand.users.append(node)
        self._nodes.append(node)
        self._members.add(id(node))
        return node

    @staticmethod
    def _bits(node: Node) -> BitsType:
        if not isinstance(node.type, BitsType):
            raise TypeError(f"{node.name} must be bits-typed, not {node.type}")
        return node.type

    def param(self, name: str, type_: Type) -> Node:
        """Add a parameter named ``name``."""
        if name in self._param_names:
            raise ValueError(f"duplicate parameter name: {name}")
        self._param_names.add(name)
        return self._add(Op.PARAM, type_, name=name)

    def literal(self, value: object, type_: Type | None = None, name: str | None = None) -> Node:
        """Add a constant; its type is inferred from ``value`` when not given."""
        if type_ is None:
            type_ = _infer_type(value)
        _check_value(value, type_)
        return self._add(Op.LITERAL, type_, name=name, value=value)

    def concat(self, operands: Sequence[Node], name: str | None = None) -> Node:
        """Join bit vectors; the first operand holds the most significant bits."""
        width = sum(self._bits(operand).width for operand in operands)
        return self._add(Op.CONCAT, BitsType(width), operands, name)

    def tuple(self, operands: Sequence[Node], name: str | None = None) -> Node:
        """Group the operands into a tuple."""
        type_ = TupleType(tuple(operand.type for operand in operands))
        return self._add(Op.TUPLE, type_, operands, name)

    def array(
        self, operands: Sequence[Node], element_type: Type, name: str | None = None
    ) -> Node:
        """Group operands of ``element_type`` into an array."""
        for operand in operands:
            if operand.type != element_type:
                raise TypeError(
                    f"array element {operand.name} has type {operand.type}, "
                    f"expected {element_type}"
                )
        return self._add(Op.ARRAY, ArrayType(len(operands), element_type), operands, name)

    def _binary(self, op: Op, lhs: Node, rhs: Node, name: str | None) -> Node:
        if self._bits(lhs) != self._bits(rhs):
            raise TypeError(f"operand types differ: {lhs.type} and {rhs.type}")
        result = BitsType(1) if op is Op.EQ else lhs.type
        return self._add(op, result, (lhs, rhs), name)

    def and_(self, lhs: Node, rhs: Node, name: str | None = None) -> Node:
        """Bitwise AND of two operands of one type."""
        return self._binary(Op.AND, lhs, rhs, name)

    def or_(self, lhs: Node, rhs: Node, name: str | None = None) -> Node:
        """Bitwise OR of two operands of one type."""
        return self._binary(Op.OR, lhs, rhs, name)

    def not_(self, operand: Node, name: str | None = None) -> Node:
        """Bitwise NOT."""
        return self._add(Op.NOT, self._bits(operand), (operand,), name)

    def eq(self, lhs: Node, rhs: Node, name: str | None = None) -> Node:
        """Single-bit equality comparison."""
        return self._binary(Op.EQ, lhs, rhs, name)

    def array_index(
        self, array: Node, indices: Sequence[Node], name: str | None = None
    ) -> Node:
        """Index into ``array`` once per entry of ``indices``."""
        type_ = array.type
        for index in indices:
            self._bits(index)
            if not isinstance(type_, ArrayType):
                raise TypeError(f"too many indices for {array.type}")
            type_ = type_.element_type
        return self._add(Op.ARRAY_INDEX, type_, (array, *indices), name)

    def tuple_index(self, operand: Node, index: int, name: str | None = None) -> Node:
        """Select element ``index`` of a tuple."""
        if not isinstance(operand.type, TupleType):
            raise TypeError(f"{operand.name} is not a tuple")
        if not 0 <= index < operand.type.size:
            raise IndexError(f"tuple index {index} out of range for {operand.type}")
        return self._add(
            Op.TUPLE_INDEX, operand.type.element_types[index], (operand,), name, index=index
        )

    def bit_slice(
        self, operand: Node, start: int, width: int, name: str | None = None
    ) -> Node:
        """Take ``width`` bits of ``operand`` starting at bit ``start``."""
        bits = self._bits(operand)
        if start < 0 or width < 0 or start + width > bits.width:
            raise ValueError(
                f"slice [{start}, {start + width}) out of range for {bits}"
            )
        return self._add(Op.BIT_SLICE, BitsType(width), (operand,), name, start=start)

    def build(self, return_value: Node | None = None) -> Function:
        """Finish the function; by default it returns the last node added."""
        if return_value is None:
            if not self._nodes:
                raise ValueError(f"function {self.name} has no nodes to return")
            return_value = self._nodes[-1]
        elif id(return_value) not in self._members:
            raise ValueError(
                f"return value {return_value.name} does not belong to {self.name}"
            )
        return Function(self.name, self._nodes, return_value)