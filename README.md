# fhe_transpiler

`fhe_transpiler` turns booleanified gate-level functions into C++ source that
uses the TFHE gate-bootstrapping API (`bootsAND`, `bootsOR`, `bootsNOT`,
`bootsCONSTANT`, `bootsCOPY`). It also has helpers that encode plaintext
integers and strings as bit lists, and small utilities for running external
tools, handling temporary files and finding files next to the running program.

## Installation

```
pip install .
```

To run the tests as well:

```
pip install ".[test]"
pytest
```

## Building a function

Functions are described in memory with `fhe_transpiler.ir.FunctionBuilder`.
Node ids are given out from 1 upwards in the order nodes are added. The
builder offers `param`, `literal`, `concat`, `tuple`, `array`, `and_`, `or_`,
`not_`, `eq`, `array_index`, `tuple_index` and `bit_slice`, and `build`
returns a `Function`. Types are `BitsType`, `ArrayType` and `TupleType`.

```python
from fhe_transpiler.ir import BitsType, FunctionBuilder

builder = FunctionBuilder("test_fn")
a = builder.param("a", BitsType(1))
b = builder.param("b", BitsType(1))
out = builder.and_(a, b, "a_and_b")
function = builder.build(out)
```

Ill-formed graphs (mismatched operand types, out-of-range slices or indices,
nodes from another builder, duplicate parameter names) raise `TypeError`,
`ValueError` or `IndexError` while building.

## Describing the C++ signature

`fhe_transpiler.metadata` describes the signature of the original top-level
function: the parameter names, whether each one is a non-const reference (an
in/out parameter), and whether the function returns a value.

```python
from fhe_transpiler.metadata import FunctionParameter, FunctionPrototype, MetadataOutput

metadata = MetadataOutput(
    top_func_proto=FunctionPrototype(
        name="test_fn",
        returns_void=False,
        params=[FunctionParameter("a"), FunctionParameter("b")],
    )
)
```

`MetadataOutput.out_params()` lists the non-const reference parameters and
`MetadataOutput.num_out_params()` counts them, plus one for a non-void return.

## Generating code

```python
from fhe_transpiler.tfhe_transpiler import TfheTranspiler

source = TfheTranspiler.translate(function, metadata)
header = TfheTranspiler.translate_header(function, metadata, "out/test_fn.h")
```

`translate` returns the whole C++ translation unit: the prelude with the
function signature, one gate call for each node, the copies of every output
bit into `result` and the in/out parameters, and the clean-up of temporaries.
`translate_header` returns a header whose include guard is taken from the file
name, here `TEST_FN_H_`; a header path of `-` gives `FHE_GENERATE_H_`.

The pieces are also available on their own: `function_signature`, `prelude`,
`conclusion`, `collect_outputs`, `execute`, `initialize_node`,
`node_reference`, `param_bit_reference`, `output_bit_reference` and `copy_to`.
New targets can be added by subclassing
`fhe_transpiler.abstract_transpiler.AbstractTranspiler` and supplying those
snippet methods.

Problems with the input are raised as
`fhe_transpiler.abstract_transpiler.TranspilerError`, for example an
operation with no gate (such as `eq`), a literal other than 0 or 1 that is
used by anything other than an array index, a non-literal array index, a
header path with an empty file name, or an output that has no matching
in/out parameter.

## Plaintext encoding

`fhe_transpiler.boolean_data` packs values into bit lists, least significant
bit first, with two's complement for signed values:

```python
from fhe_transpiler.boolean_data import EncodedArray, EncodedString, EncodedValue

value = EncodedValue(10, bit_width=32, signed=True)
assert value.decode() == 10

array = EncodedArray.from_values([1, 2, 3], bit_width=8)
assert array.decode() == [1, 2, 3]

text = EncodedString.from_string("abcd")
assert text.decode() == "abcd"
```

The plain functions `encode(value, bit_width)` and `decode(bits, signed)` do
the same for a single value.

## Utilities

- `fhe_transpiler.subprocess_runner.invoke_subprocess(argv, cwd)` runs a tool
  and returns its stdout and stderr. It raises `ValueError` for an empty
  `argv` and `SubprocessError` if the tool cannot be started or exits with a
  non-zero status.
- `fhe_transpiler.temp_file.TempFile.create()` makes an empty temporary file
  that is deleted by `cleanup()` or when used as a context manager exits.
- `fhe_transpiler.runfiles.get_runfile_path(leaf, package)` finds a file
  relative to the running program, its `.runfiles` directory, or the current
  directory, optionally under a package prefix, and raises
  `FileNotFoundError` when there is none.

## What it does not do

- There is no command-line program; everything is used from Python.
- Functions must be built with `FunctionBuilder`. There is no reader for IR
  text or for serialized metadata files, and no booleanifying or optimizing
  of functions: the input must already be reduced to single-bit gates.
- Only the TFHE C++ target is provided. The package generates code; it does
  not encrypt, decrypt or evaluate anything itself.